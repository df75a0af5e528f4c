from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field

import httpx
import requests

from .settings import settings

logger = logging.getLogger(__name__)

VERSION_RE = re.compile(r"\((v[0-9][a-z0-9.\-]*)\)")


@dataclass
class ProbeResult:
    url: str
    counts: Counter[str] = field(default_factory=Counter)
    errors: int = 0

    @property
    def total(self) -> int:
        return sum(self.counts.values()) + self.errors

    def ratio(self, version: str) -> float:
        answered = sum(self.counts.values())
        return self.counts.get(version, 0) / answered if answered else 0.0

    def as_dict(self) -> dict:
        answered = sum(self.counts.values())
        return {
            "url": self.url,
            "total": self.total,
            "errors": self.errors,
            "counts": dict(sorted(self.counts.items())),
            "ratios": {v: round(n / answered, 4) for v, n in sorted(self.counts.items())} if answered else {},
        }


def classify(body: str) -> str:
    """Version named in a responder body, e.g. `... STABLE version (v1)` -> `v1`."""
    m = VERSION_RE.search(body)
    return m.group(1) if m else "unknown"


def sample(
    url: str,
    count: int | None = None,
    client: httpx.Client | None = None,
    timeout_s: float | None = None,
) -> ProbeResult:
    """Send GET requests to an entry point and tally which version answered.

    Each request opens a fresh connection unless `client` keeps one alive;
    kube-proxy balances per connection, so pass no client for a live cluster.
    """
    n = settings.probe_requests if count is None else count
    if n < 0:
        raise ValueError("count must be >= 0")
    timeout = settings.probe_timeout_s if timeout_s is None else timeout_s

    result = ProbeResult(url=url)
    for _ in range(n):
        try:
            if client is not None:
                resp = client.get(url)
            else:
                resp = httpx.get(url, timeout=timeout, follow_redirects=False)
        except httpx.HTTPError as e:
            logger.debug("Request to %s failed: %s: %s", url, type(e).__name__, e)
            result.errors += 1
            continue
        if resp.status_code != 200:
            logger.debug("Request to %s returned HTTP %d", url, resp.status_code)
            result.errors += 1
            continue
        result.counts[classify(resp.text)] += 1
    logger.info("Sampled %s: %s", url, result.as_dict())
    return result


def check_health(url: str, timeout_s: float | None = None) -> tuple[bool, str]:
    """Call a responder once. Healthy means HTTP 200 with a body naming a version.

    Returns (is_healthy, message).
    """
    timeout = settings.probe_timeout_s if timeout_s is None else timeout_s
    try:
        resp = requests.get(url, timeout=timeout)
    except requests.exceptions.ConnectionError:
        return False, "No connection"
    except requests.exceptions.Timeout:
        return False, "Timeout"
    except requests.exceptions.RequestException as e:
        return False, f"Error: {type(e).__name__}: {e}"

    if resp.status_code != 200:
        return False, f"HTTP {resp.status_code}"
    version = classify(resp.text)
    if version == "unknown":
        return False, f"Unexpected body: {resp.text[:80]!r}"
    return True, f"Serving {version}"
