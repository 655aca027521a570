"""Traffic-agent sidecar composition for Kubernetes workloads.

Builds the agent container, its init container and its volumes from a
SidecarPolicy and the Pod the agent is injected into.
"""

from .config import ContainerPolicy, Intercept, Protocol, SidecarPolicy, load_sidecar_policy
from .container import agent_container, init_container
from .intercepts import port_unique_intercepts
from .matcher import each_container, matched_containers
from .volumes import agent_volumes

__all__ = [
    "ContainerPolicy",
    "Intercept",
    "Protocol",
    "SidecarPolicy",
    "agent_container",
    "agent_volumes",
    "each_container",
    "init_container",
    "load_sidecar_policy",
    "matched_containers",
    "port_unique_intercepts",
]
