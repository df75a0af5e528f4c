"""Manual promotion and rollback expressed as manifest edits.

Nothing here talks to a cluster. Each function returns a new ManifestSet the
operator reviews and applies with kubectl; the orchestrator's own rolling
update does the rest.
"""
from __future__ import annotations

import logging

from .manifests import DeploymentManifest, ManifestSet

logger = logging.getLogger(__name__)

STABLE = "myapp-stable"
CANARY = "myapp-canary"


def _with_image(d: DeploymentManifest, image: str) -> DeploymentManifest:
    containers = [c.model_copy(update={"image": image}) if i == 0 else c for i, c in enumerate(d.containers)]
    return d.model_copy(update={"containers": containers})


def promote(ms: ManifestSet, stable: str = STABLE, canary: str = CANARY) -> ManifestSet:
    """Stable takes the canary's image; the canary Deployment goes away.

    Replica count of the stable Deployment is kept, so capacity does not drop
    while its pods roll over to the new image.
    """
    s = ms.deployment(stable)
    c = ms.deployment(canary)
    if not c.image:
        raise ValueError(f"Deployment '{canary}' has no container image.")
    logger.info("Promoting %s: %s -> %s", stable, s.image, c.image)
    deployments = [_with_image(d, c.image) if d.name == stable else d for d in ms.deployments if d.name != canary]
    return ManifestSet(deployments=deployments, services=list(ms.services))


def rollback(ms: ManifestSet, canary: str = CANARY) -> ManifestSet:
    """Drop the canary Deployment; the Service then selects stable pods only."""
    ms.deployment(canary)
    logger.info("Rolling back: removing %s", canary)
    return ManifestSet(deployments=[d for d in ms.deployments if d.name != canary], services=list(ms.services))


def set_replicas(ms: ManifestSet, name: str, replicas: int) -> ManifestSet:
    if replicas < 0:
        raise ValueError("replicas must be >= 0")
    ms.deployment(name)
    deployments = [d.model_copy(update={"replicas": replicas}) if d.name == name else d for d in ms.deployments]
    return ManifestSet(deployments=deployments, services=list(ms.services))
