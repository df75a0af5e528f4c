from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

MANIFEST_SUFFIXES = (".yaml", ".yml")


class ManifestError(Exception):
    pass


def _merge_port(raw_ports: list[Any], index: int, fields: dict[str, Any]) -> dict[str, Any]:
    """Modelled port fields laid over the original entry; name, protocol and hostPort survive."""
    pdoc = copy.deepcopy(raw_ports[index]) if index < len(raw_ports) and isinstance(raw_ports[index], dict) else {}
    pdoc.update(fields)
    return pdoc


class ContainerPort(BaseModel):
    container_port: int = Field(..., ge=1, le=65535)
    name: str | None = None


def _container_port_fields(p: ContainerPort) -> dict[str, Any]:
    fields: dict[str, Any] = {"containerPort": p.container_port}
    if p.name:
        fields["name"] = p.name
    return fields


class Container(BaseModel):
    name: str
    image: str
    ports: list[ContainerPort] = Field(default_factory=list)


class DeploymentManifest(BaseModel):
    name: str = Field(..., description="metadata.name")
    replicas: int = Field(1, ge=0, le=1000)
    selector: dict[str, str] = Field(default_factory=dict, description="spec.selector.matchLabels")
    labels: dict[str, str] = Field(default_factory=dict, description="spec.template.metadata.labels")
    containers: list[Container] = Field(default_factory=list)
    source: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @property
    def image(self) -> str | None:
        return self.containers[0].image if self.containers else None

    def container_ports(self) -> set[int | str]:
        out: set[int | str] = set()
        for c in self.containers:
            for p in c.ports:
                out.add(p.container_port)
                if p.name:
                    out.add(p.name)
        return out

    def to_dict(self) -> dict[str, Any]:
        doc = copy.deepcopy(self.raw) or {"apiVersion": "apps/v1", "kind": "Deployment"}
        doc.setdefault("metadata", {})["name"] = self.name
        spec = doc.setdefault("spec", {})
        spec["replicas"] = self.replicas
        spec.setdefault("selector", {})["matchLabels"] = dict(self.selector)
        template = spec.setdefault("template", {})
        template.setdefault("metadata", {})["labels"] = dict(self.labels)
        raw_containers = template.setdefault("spec", {}).get("containers") or []
        containers: list[dict[str, Any]] = []
        for i, c in enumerate(self.containers):
            cdoc = copy.deepcopy(raw_containers[i]) if i < len(raw_containers) else {}
            cdoc["name"] = c.name
            cdoc["image"] = c.image
            if c.ports:
                raw_ports = cdoc.get("ports") or []
                cdoc["ports"] = [_merge_port(raw_ports, j, _container_port_fields(p)) for j, p in enumerate(c.ports)]
            containers.append(cdoc)
        template["spec"]["containers"] = containers
        return doc


class ServicePort(BaseModel):
    port: int = Field(..., ge=1, le=65535)
    target_port: int | str | None = None
    node_port: int | None = Field(None, ge=30000, le=32767)

    @property
    def effective_target(self) -> int | str:
        # Kubernetes defaults targetPort to port.
        return self.target_port if self.target_port is not None else self.port


class ServiceManifest(BaseModel):
    name: str
    type: str = "ClusterIP"
    selector: dict[str, str] = Field(default_factory=dict)
    ports: list[ServicePort] = Field(default_factory=list)
    source: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)

    def selects(self, labels: dict[str, str]) -> bool:
        """True when every selector pair is present in `labels`.

        An empty selector selects nothing: Kubernetes leaves the Endpoints of
        such a Service unmanaged.
        """
        if not self.selector:
            return False
        return all(labels.get(k) == v for k, v in self.selector.items())

    def to_dict(self) -> dict[str, Any]:
        doc = copy.deepcopy(self.raw) or {"apiVersion": "v1", "kind": "Service"}
        doc.setdefault("metadata", {})["name"] = self.name
        spec = doc.setdefault("spec", {})
        spec["type"] = self.type
        spec["selector"] = dict(self.selector)
        raw_ports = spec.get("ports") or []
        ports: list[dict[str, Any]] = []
        for i, p in enumerate(self.ports):
            fields: dict[str, Any] = {"port": p.port}
            if p.target_port is not None:
                fields["targetPort"] = p.target_port
            if p.node_port is not None:
                fields["nodePort"] = p.node_port
            ports.append(_merge_port(raw_ports, i, fields))
        spec["ports"] = ports
        return doc


@dataclass
class ManifestSet:
    deployments: list[DeploymentManifest] = field(default_factory=list)
    services: list[ServiceManifest] = field(default_factory=list)

    def deployment(self, name: str) -> DeploymentManifest:
        for d in self.deployments:
            if d.name == name:
                return d
        raise KeyError(f"unknown deployment '{name}'")

    def service(self, name: str | None = None) -> ServiceManifest:
        if name is None:
            if not self.services:
                raise KeyError("no service defined")
            return self.services[0]
        for s in self.services:
            if s.name == name:
                return s
        raise KeyError(f"unknown service '{name}'")


def _mapping(node: Any, where: str) -> dict[str, Any]:
    if node is None:
        return {}
    if not isinstance(node, dict):
        raise ManifestError(f"{where} must be a mapping, got {type(node).__name__}")
    return node


def _sequence(node: Any, where: str) -> list[Any]:
    if node is None:
        return []
    if not isinstance(node, list):
        raise ManifestError(f"{where} must be a list, got {type(node).__name__}")
    return node


def _parse_deployment(doc: dict[str, Any], source: str) -> DeploymentManifest:
    meta = _mapping(doc.get("metadata"), "metadata")
    spec = _mapping(doc.get("spec"), "spec")
    template = _mapping(spec.get("template"), "spec.template")
    pod_spec = _mapping(template.get("spec"), "spec.template.spec")
    containers = []
    for i, c in enumerate(_sequence(pod_spec.get("containers"), "spec.template.spec.containers")):
        where = f"spec.template.spec.containers[{i}]"
        c = _mapping(c, where)
        ports = []
        for j, p in enumerate(_sequence(c.get("ports"), f"{where}.ports")):
            p = _mapping(p, f"{where}.ports[{j}]")
            ports.append(ContainerPort(container_port=p.get("containerPort"), name=p.get("name")))
        containers.append(Container(name=c.get("name"), image=c.get("image"), ports=ports))
    return DeploymentManifest(
        name=meta.get("name"),
        replicas=spec.get("replicas", 1),
        selector=_mapping(spec.get("selector"), "spec.selector").get("matchLabels") or {},
        labels=_mapping(template.get("metadata"), "spec.template.metadata").get("labels") or {},
        containers=containers,
        source=source,
        raw=doc,
    )


def _parse_service(doc: dict[str, Any], source: str) -> ServiceManifest:
    meta = _mapping(doc.get("metadata"), "metadata")
    spec = _mapping(doc.get("spec"), "spec")
    ports = []
    for i, p in enumerate(_sequence(spec.get("ports"), "spec.ports")):
        p = _mapping(p, f"spec.ports[{i}]")
        ports.append(ServicePort(port=p.get("port"), target_port=p.get("targetPort"), node_port=p.get("nodePort")))
    return ServiceManifest(
        name=meta.get("name"),
        type=spec.get("type", "ClusterIP"),
        selector=spec.get("selector") or {},
        ports=ports,
        source=source,
        raw=doc,
    )


def _manifest_files(path: Path) -> list[Path]:
    if path.is_file():
        return [path]
    if not path.is_dir():
        raise ManifestError(f"No such manifest file or directory: {path}")
    return sorted(p for p in path.iterdir() if p.is_file() and p.suffix in MANIFEST_SUFFIXES)


def load_manifests(path: str | Path) -> ManifestSet:
    """Load Deployment and Service objects from a file or a directory of YAML files.

    Multi-document files are supported. Other kinds are skipped.
    """
    ms = ManifestSet()
    for f in _manifest_files(Path(path)):
        try:
            docs = list(yaml.safe_load_all(f.read_text(encoding="utf-8")))
        except yaml.YAMLError as e:
            raise ManifestError(f"{f}: invalid YAML: {e}") from e
        for doc in docs:
            if not doc:
                continue
            if not isinstance(doc, dict):
                raise ManifestError(f"{f}: expected a mapping, got {type(doc).__name__}")
            kind = doc.get("kind")
            try:
                if kind == "Deployment":
                    ms.deployments.append(_parse_deployment(doc, str(f)))
                elif kind == "Service":
                    ms.services.append(_parse_service(doc, str(f)))
                else:
                    logger.debug("Skipping %s object in %s", kind, f)
            except (ManifestError, ValidationError) as e:
                raise ManifestError(f"{f}: invalid {kind}: {e}") from e
    logger.debug("Loaded %d deployment(s), %d service(s) from %s", len(ms.deployments), len(ms.services), path)
    return ms


def validate(ms: ManifestSet) -> list[str]:
    """Return consistency problems; an empty list means the set is routable."""
    problems: list[str] = []
    if not ms.deployments:
        problems.append("No Deployment found.")
    if not ms.services:
        problems.append("No Service found.")

    seen: set[str] = set()
    for d in ms.deployments:
        if d.name in seen:
            problems.append(f"Deployment '{d.name}' is defined more than once.")
        seen.add(d.name)
        if not d.containers:
            problems.append(f"Deployment '{d.name}' has no containers.")
        if not d.selector:
            problems.append(f"Deployment '{d.name}' has an empty selector.")
        for k, v in d.selector.items():
            if d.labels.get(k) != v:
                problems.append(
                    f"Deployment '{d.name}' selector {k}={v} does not match its pod template labels."
                )

    for s in ms.services:
        if not s.selector:
            problems.append(f"Service '{s.name}' has an empty selector.")
            continue
        for d in ms.deployments:
            if not s.selects(d.labels):
                problems.append(
                    f"Service '{s.name}' selector {s.selector} does not match pods of Deployment "
                    f"'{d.name}' (labels {d.labels}); it would receive no traffic."
                )
                continue
            ports = d.container_ports()
            for p in s.ports:
                if p.effective_target not in ports:
                    problems.append(
                        f"Service '{s.name}' targetPort {p.effective_target} is not a container port "
                        f"of Deployment '{d.name}'."
                    )
    return problems


def dump_manifests(ms: ManifestSet) -> str:
    docs = [d.to_dict() for d in ms.deployments] + [s.to_dict() for s in ms.services]
    return yaml.safe_dump_all(docs, sort_keys=False)
