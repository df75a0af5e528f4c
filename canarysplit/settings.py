from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    manifest_dir: str = os.getenv("CANARY_MANIFEST_DIR", "k8s")
    services_dir: str = os.getenv("CANARY_SERVICES_DIR", "services")
    log_level: str = os.getenv("CANARY_LOG_LEVEL", "INFO")

    # Entry point sampling
    probe_url: str = os.getenv("CANARY_PROBE_URL", "http://localhost:30080/")
    probe_requests: int = _env_int("CANARY_PROBE_REQUESTS", 100)
    probe_timeout_s: float = _env_float("CANARY_PROBE_TIMEOUT_S", 2.0)


settings = Settings()
