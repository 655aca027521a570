"""Environment of the traffic-agent container.

Every variable of every matched application container is re-exported to the
agent under ``_TEL_APP_<envPrefix><name>`` so that the agent can hand the
application's environment to an intercepting client. The agent's own
variables (API port, pod IP, pod name) follow the re-exported ones.
"""

from __future__ import annotations

import copy
from typing import TYPE_CHECKING

from kubernetes.client import V1EnvVar, V1EnvVarSource, V1ObjectFieldSelector

from trafficagent.constants import ENV_API_PORT, ENV_POD_IP, ENV_POD_NAME, ENV_PREFIX_APP
from trafficagent.matcher import matched_containers

if TYPE_CHECKING:
    from kubernetes.client import V1Container, V1EnvFromSource, V1Pod

    from trafficagent.config import ContainerPolicy, SidecarPolicy


def app_container_env(app: V1Container, cc: ContainerPolicy) -> list[V1EnvVar]:
    """Copy the env of ``app`` with every name re-prefixed. ``app`` is not modified."""
    prefix = ENV_PREFIX_APP + cc.env_prefix
    env: list[V1EnvVar] = []
    for e in app.env or []:
        e = copy.copy(e)
        e.name = prefix + e.name
        env.append(e)
    return env


def app_container_env_from(app: V1Container, cc: ContainerPolicy) -> list[V1EnvFromSource]:
    """Copy the envFrom sources of ``app`` with their prefix rewritten."""
    prefix = ENV_PREFIX_APP + cc.env_prefix
    sources: list[V1EnvFromSource] = []
    for ef in app.env_from or []:
        ef = copy.copy(ef)
        ef.prefix = prefix + (ef.prefix or "")
        sources.append(ef)
    return sources


def _field_ref_env(name: str, field_path: str) -> V1EnvVar:
    return V1EnvVar(
        name=name,
        value_from=V1EnvVarSource(
            field_ref=V1ObjectFieldSelector(api_version="v1", field_path=field_path)
        ),
    )


def agent_env(pod: V1Pod, policy: SidecarPolicy) -> list[V1EnvVar]:
    """Build the complete env list of the agent container.

    Order: re-exported app variables in container policy order, then the API
    port (only when ``policy.api_port`` is set), the pod IP and the pod name.
    """
    env: list[V1EnvVar] = []
    for app, cc in matched_containers(pod, policy):
        env.extend(app_container_env(app, cc))

    if policy.api_port > 0:
        env.append(V1EnvVar(name=ENV_API_PORT, value=str(policy.api_port)))

    env.append(_field_ref_env(ENV_POD_IP, "status.podIP"))
    env.append(_field_ref_env(ENV_POD_NAME, "metadata.name"))
    return env


def agent_env_from(pod: V1Pod, policy: SidecarPolicy) -> list[V1EnvFromSource]:
    sources: list[V1EnvFromSource] = []
    for app, cc in matched_containers(pod, policy):
        sources.extend(app_container_env_from(app, cc))
    return sources
