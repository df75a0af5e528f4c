import os
import sys
from pathlib import Path

import pytest

# Ensure project root is importable (so `import services...` and `import cli` work reliably across environments)
_project_root = os.path.dirname(os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)


@pytest.fixture
def manifest_dir() -> Path:
    return Path(_project_root) / "k8s"


@pytest.fixture
def write_manifests(tmp_path):
    """Write YAML documents into a fresh directory and return its path."""

    def _write(**files: str) -> Path:
        for name, text in files.items():
            (tmp_path / f"{name}.yaml").write_text(text, encoding="utf-8")
        return tmp_path

    return _write
