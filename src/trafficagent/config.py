"""Sidecar policy models and loading.

A sidecar policy describes the traffic-agent for one workload: the agent
image, the optional API port, and, for every application container the agent
should wrap, how its environment, volume mounts and ports are folded into the
agent container. Documents use the camelCase keys of the generated agent
config; snake_case field names are accepted as well.
"""

from __future__ import annotations

import enum
import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from trafficagent.constants import MAX_PORT_NAME_LENGTH
from trafficagent.intercepts import port_unique_intercepts

logger = logging.getLogger(__name__)

_MODEL_CONFIG = {"populate_by_name": True, "alias_generator": to_camel}


# ── Policy Models ────────────────────────────────────────────────────────────


class Protocol(str, enum.Enum):
    """Transport protocol of an intercepted port."""

    TCP = "TCP"
    UDP = "UDP"


class Intercept(BaseModel):
    """One interceptable port on one application container.

    Other keys of the generated agent config (service name and port, the
    application's container port) are accepted and ignored.
    """

    model_config = _MODEL_CONFIG

    agent_port: int = Field(ge=1, le=65535, description="Port the agent listens on")
    container_port_name: str = Field(
        max_length=MAX_PORT_NAME_LENGTH,
        description="Name of the agent container port, unique within the container",
    )
    protocol: Protocol = Protocol.TCP

    @field_validator("protocol", mode="before")
    @classmethod
    def _normalize_protocol(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class ContainerPolicy(BaseModel):
    """How one application container is folded into the agent."""

    model_config = _MODEL_CONFIG

    name: str  # Must equal the application container's name
    env_prefix: str = ""
    mount_point: str = ""  # Root under which the app's non-credential mounts are relocated
    intercepts: list[Intercept] = Field(default_factory=list)


class SidecarPolicy(BaseModel):
    """Top-level traffic-agent configuration for one workload.

    ``containers`` is ordered: environment variables and volume mounts are
    emitted in the order the container policies are declared here, not in
    the order the containers appear in the Pod.
    """

    model_config = _MODEL_CONFIG

    agent_image: str
    api_port: int = Field(default=0, ge=0, le=65535)  # 0 = disabled
    containers: list[ContainerPolicy] = Field(default_factory=list)

    agent_name: str = ""  # Key of this workload's entry in the agents config map

    # Workload selection for injection; empty matches any
    namespace: str = ""
    workload_name: str = ""
    workload_kind: str = ""

    @field_validator("agent_image")
    @classmethod
    def _validate_agent_image(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("agent_image must not be empty")
        return v

    @model_validator(mode="after")
    def _validate_unique_ports(self) -> SidecarPolicy:
        """Agent ports and port names must be unique across the whole agent container."""
        port_owner: dict[int, str] = {}
        name_owner: dict[str, str] = {}
        for cc in self.containers:
            for ic in port_unique_intercepts(cc):
                if ic.agent_port in port_owner:
                    raise ValueError(
                        f"agent port {ic.agent_port} of container {cc.name!r} is already "
                        f"used by container {port_owner[ic.agent_port]!r}"
                    )
                if ic.container_port_name in name_owner:
                    raise ValueError(
                        f"port name {ic.container_port_name!r} of container {cc.name!r} is "
                        f"already used by container {name_owner[ic.container_port_name]!r}"
                    )
                port_owner[ic.agent_port] = cc.name
                name_owner[ic.container_port_name] = cc.name
        return self

    @property
    def intercept_count(self) -> int:
        return sum(len(cc.intercepts) for cc in self.containers)


# ── Policy Loader ────────────────────────────────────────────────────────────


def load_sidecar_policy(path: Path) -> SidecarPolicy:
    """Load a sidecar policy from a YAML (or JSON) document.

    Args:
        path: Path to the policy document.

    Returns:
        Validated SidecarPolicy.

    Raises:
        FileNotFoundError: If the document doesn't exist.
        ValueError: If the document is not a mapping or fails validation.
    """
    if not path.exists():
        raise FileNotFoundError(f"Sidecar policy not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError(f"Sidecar policy must be a mapping, got {type(raw).__name__}: {path}")

    # Environment variable overrides for deployment
    agent_image = os.environ.get("TRAFFICAGENT_AGENT_IMAGE")
    if agent_image:
        raw["agentImage"] = agent_image
        raw.pop("agent_image", None)

    api_port = os.environ.get("TRAFFICAGENT_API_PORT")
    if api_port:
        raw["apiPort"] = api_port
        raw.pop("api_port", None)

    policy = SidecarPolicy.model_validate(raw)

    logger.info(
        "Loaded sidecar policy: agent=%s containers=%d intercepts=%d",
        policy.agent_name or policy.workload_name or "<unnamed>",
        len(policy.containers),
        policy.intercept_count,
    )
    return policy
