from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

import docker
from docker.errors import BuildError, DockerException

logger = logging.getLogger(__name__)

TAG_RE = re.compile(r"^[a-z0-9]+(?:[._\-/][a-z0-9]+)*(?::[A-Za-z0-9_][A-Za-z0-9_.\-]{0,127})?$")

# track directory under services/ -> image tag the manifests reference
IMAGES: dict[str, str] = {
    "stable": "myapp:v1",
    "canary": "myapp:v2",
}


@dataclass(frozen=True)
class BuiltImage:
    tag: str
    id: str
    context: str


def validate_tag(tag: str) -> None:
    if not TAG_RE.match(tag):
        raise ValueError(f"Invalid image reference '{tag}'. Use lowercase name[:tag].")


def _client() -> docker.DockerClient:
    return docker.from_env()


def docker_available() -> bool:
    try:
        c = _client()
        c.ping()
        return True
    except DockerException:
        return False


def build_image(context: str | Path, tag: str) -> BuiltImage:
    """Build the Dockerfile in `context` and tag it."""
    validate_tag(tag)
    ctx = Path(context)
    if not (ctx / "Dockerfile").is_file():
        raise FileNotFoundError(f"No Dockerfile in {ctx}")
    if not docker_available():
        raise RuntimeError("Docker is not available. Start Docker Desktop / docker daemon and try again.")

    try:
        image, _logs = _client().images.build(path=str(ctx), tag=tag, rm=True)
    except BuildError as e:
        raise RuntimeError(f"Build of {tag} failed: {e.msg}") from e
    except DockerException as e:
        raise RuntimeError(f"Build of {tag} failed: {type(e).__name__}: {e}") from e
    logger.info("Built %s from %s (%s)", tag, ctx, image.id)
    return BuiltImage(tag=tag, id=image.id, context=str(ctx))


def build_all(services_dir: str | Path = "services") -> list[BuiltImage]:
    base = Path(services_dir)
    return [build_image(base / track, tag) for track, tag in IMAGES.items()]
