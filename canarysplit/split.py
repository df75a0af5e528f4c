from __future__ import annotations

import random
from collections import Counter
from dataclasses import dataclass

from .manifests import ManifestSet


class NoBackends(Exception):
    pass


@dataclass(frozen=True)
class Pod:
    deployment: str
    version: str
    image: str
    ordinal: int


def image_version(image: str | None) -> str:
    """Version label carried by an image reference: `myapp:v2` -> `v2`.

    Digests and untagged references fall back to `latest` like the docker CLI.
    """
    if not image:
        return "unknown"
    ref = image.split("@", 1)[0]
    name, sep, tag = ref.rpartition(":")
    if not sep or "/" in tag:
        return "latest"
    return tag


def backend_pool(ms: ManifestSet, service: str | None = None) -> list[Pod]:
    """Pods the Service's selector matches once every Deployment is reconciled.

    The orchestrator sees one undifferentiated pool; version is not a routing
    input, only a label on the result.
    """
    svc = ms.service(service)
    pool: list[Pod] = []
    for d in ms.deployments:
        if not svc.selects(d.labels):
            continue
        version = image_version(d.image)
        for i in range(d.replicas):
            pool.append(Pod(deployment=d.name, version=version, image=d.image or "", ordinal=i))
    return pool


def expected_split(pool: list[Pod]) -> dict[str, float]:
    """Share of traffic per version under even per-pod load balancing."""
    if not pool:
        return {}
    counts = Counter(p.version for p in pool)
    total = len(pool)
    return {ver: n / total for ver, n in sorted(counts.items())}


def select_backend(pool: list[Pod], rng: random.Random | None = None) -> Pod:
    """Pick one pod uniformly at random, the way kube-proxy spreads connections."""
    if not pool:
        raise NoBackends("No pods match the service selector.")
    return (rng or random).choice(pool)


def simulate(pool: list[Pod], requests: int, seed: int | None = None) -> Counter[str]:
    """Route `requests` requests through the pool and count responses per version."""
    if requests < 0:
        raise ValueError("requests must be >= 0")
    if not pool:
        raise NoBackends("No pods match the service selector.")
    rng = random.Random(seed)
    counts: Counter[str] = Counter()
    for _ in range(requests):
        counts[select_backend(pool, rng).version] += 1
    return counts
