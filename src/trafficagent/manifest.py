"""Manifest I/O: reading Pods from YAML and splicing the agent into workloads.

Kubernetes objects are exchanged with the composer as ``kubernetes.client``
models. YAML documents are plain dicts with the API's camelCase keys and are
converted with the client's own (de)serializer.
"""

from __future__ import annotations

import inspect
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from kubernetes.client import ApiClient, V1Container, V1Pod, V1Volume

from trafficagent.constants import CONTAINER_NAME, INIT_CONTAINER_NAME, INJECT_ANNOTATION
from trafficagent.container import agent_container, init_container
from trafficagent.volumes import agent_volumes

if TYPE_CHECKING:
    from trafficagent.config import SidecarPolicy

logger = logging.getLogger(__name__)

WORKLOAD_KINDS = frozenset({"Deployment", "StatefulSet", "DaemonSet", "ReplicaSet"})


class _JSONResponse:
    """REST response holder for clients whose deserialize() takes a response object."""

    def __init__(self, data: Any) -> None:
        self.data = json.dumps(data)


# ── Conversion ───────────────────────────────────────────────────────────────


def to_dict(obj: Any) -> Any:
    """Convert kubernetes models (or lists of them) to plain camelCase dicts."""
    return ApiClient().sanitize_for_serialization(obj)


def _deserialize(data: dict[str, Any], klass: str) -> Any:
    """Deserialize an API document into the model named ``klass``.

    Newer clients take ``(response_text, response_type, content_type)``,
    older ones ``(response, response_type)`` where ``response.data`` holds
    the JSON text.
    """
    api = ApiClient()
    if "content_type" in inspect.signature(api.deserialize).parameters:
        return api.deserialize(json.dumps(data), klass, "application/json")
    return api.deserialize(_JSONResponse(data), klass)


def pod_from_dict(data: dict[str, Any]) -> V1Pod:
    """Build a V1Pod from a Pod document or from a workload's pod template.

    Raises:
        ValueError: If the document is neither a Pod nor a workload with a
            ``spec.template``.
    """
    kind = data.get("kind", "Pod")
    if kind == "Pod":
        raw = data
    elif kind in WORKLOAD_KINDS:
        template = (data.get("spec") or {}).get("template")
        if not isinstance(template, dict):
            raise ValueError(f"{kind} has no spec.template")
        raw = {"apiVersion": "v1", "kind": "Pod", **template}
    else:
        raise ValueError(
            f"Unsupported kind {kind!r}: expected Pod or one of {sorted(WORKLOAD_KINDS)}"
        )
    return _deserialize(raw, "V1Pod")


def load_pod(path: Path) -> V1Pod:
    """Load a Pod (or workload) YAML document from ``path``.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the document is not a Pod or workload mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Pod manifest not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Pod manifest must be a mapping: {path}")
    return pod_from_dict(raw)


# ── Rendering ────────────────────────────────────────────────────────────────


@dataclass
class SidecarSpecs:
    """Everything an injector needs to add the traffic-agent to a Pod."""

    agent_container: V1Container | None
    init_container: V1Container
    volumes: list[V1Volume] = field(default_factory=list)

    @property
    def injectable(self) -> bool:
        return self.agent_container is not None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.agent_container is not None:
            out["agentContainer"] = to_dict(self.agent_container)
        out["initContainer"] = to_dict(self.init_container)
        out["volumes"] = to_dict(self.volumes)
        return out


def render_sidecar(pod: V1Pod, policy: SidecarPolicy) -> SidecarSpecs:
    return SidecarSpecs(
        agent_container=agent_container(pod, policy),
        init_container=init_container(policy.agent_image),
        volumes=agent_volumes(policy.agent_name),
    )


# ── Injection ────────────────────────────────────────────────────────────────


def should_inject(doc: dict[str, Any], policy: SidecarPolicy) -> bool:
    """Whether ``doc`` is a workload the agent should be injected into.

    The workload must match ``policy.workload_kind``, ``policy.workload_name``
    and ``policy.namespace`` (each when set; a document without a namespace
    matches any) and its pod template must not opt out through the
    inject-traffic-agent annotation.
    """
    kind = doc.get("kind")
    if kind not in WORKLOAD_KINDS:
        return False
    if policy.workload_kind and kind != policy.workload_kind:
        return False

    metadata = doc.get("metadata") or {}
    if policy.workload_name and metadata.get("name") != policy.workload_name:
        return False
    namespace = metadata.get("namespace")
    if policy.namespace and namespace and namespace != policy.namespace:
        return False

    template = (doc.get("spec") or {}).get("template")
    if not isinstance(template, dict):
        return False
    annotations = (template.get("metadata") or {}).get("annotations") or {}
    value = str(annotations.get(INJECT_ANNOTATION, "enabled")).lower()
    return value not in ("disabled", "false")


def inject_workload(doc: dict[str, Any], policy: SidecarPolicy) -> bool:
    """Splice the agent into the pod template of ``doc``, in place.

    Returns True if the workload was modified.
    """
    name = (doc.get("metadata") or {}).get("name", "<unnamed>")
    template = doc["spec"]["template"]
    containers = (template.get("spec") or {}).get("containers") or []

    if any(c.get("name") == CONTAINER_NAME for c in containers):
        logger.info("%s %s already has a %s container", doc["kind"], name, CONTAINER_NAME)
        return False

    specs = render_sidecar(pod_from_dict(doc), policy)
    if not specs.injectable:
        logger.info("%s %s has nothing to intercept, not injecting", doc["kind"], name)
        return False

    rendered = specs.to_dict()
    pod_spec = template.setdefault("spec", {})
    pod_spec.setdefault("containers", []).append(rendered["agentContainer"])

    init_containers = pod_spec.setdefault("initContainers", [])
    if not any(c.get("name") == INIT_CONTAINER_NAME for c in init_containers):
        init_containers.append(rendered["initContainer"])

    volumes = pod_spec.setdefault("volumes", [])
    existing = {v.get("name") for v in volumes}
    for volume in rendered["volumes"]:
        if volume["name"] not in existing:
            volumes.append(volume)

    logger.info(
        "Injected %s into %s %s (%d ports)",
        CONTAINER_NAME,
        doc["kind"],
        name,
        len(rendered["agentContainer"].get("ports", [])),
    )
    return True


def inject_workloads(documents: list[Any], policy: SidecarPolicy) -> list[Any]:
    """Inject the agent into every matching workload of a multi-document manifest."""
    for doc in documents:
        if not isinstance(doc, dict) or not should_inject(doc, policy):
            continue
        inject_workload(doc, policy)
    return documents
