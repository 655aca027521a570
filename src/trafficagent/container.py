"""Assembly of the traffic-agent and init containers."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kubernetes.client import (
    V1Capabilities,
    V1Container,
    V1ContainerPort,
    V1ExecAction,
    V1Probe,
    V1SecurityContext,
    V1VolumeMount,
)

from trafficagent.constants import (
    AGENT_ARGS,
    CONFIG_MOUNT_POINT,
    CONFIG_VOLUME_NAME,
    CONTAINER_NAME,
    INIT_ARGS,
    INIT_CAPABILITIES,
    INIT_CONTAINER_NAME,
    READINESS_COMMAND,
)
from trafficagent.env import agent_env, agent_env_from
from trafficagent.intercepts import port_unique_intercepts
from trafficagent.mounts import agent_volume_mounts

if TYPE_CHECKING:
    from kubernetes.client import V1Pod

    from trafficagent.config import SidecarPolicy

logger = logging.getLogger(__name__)


def agent_ports(policy: SidecarPolicy) -> list[V1ContainerPort]:
    ports: list[V1ContainerPort] = []
    for cc in policy.containers:
        for ic in port_unique_intercepts(cc):
            ports.append(
                V1ContainerPort(
                    name=ic.container_port_name,
                    container_port=ic.agent_port,
                    protocol=ic.protocol.value,
                )
            )
    return ports


def agent_container(pod: V1Pod, policy: SidecarPolicy) -> V1Container | None:
    """Return the traffic-agent container for ``pod``.

    Returns None when the policy has no interceptable port. A workload
    without intercepts gets no agent, whatever else the policy says.
    """
    ports = agent_ports(policy)
    if not ports:
        logger.debug("No interceptable ports, no traffic-agent container")
        return None

    return V1Container(
        name=CONTAINER_NAME,
        image=policy.agent_image,
        args=list(AGENT_ARGS),
        ports=ports,
        env=agent_env(pod, policy),
        env_from=agent_env_from(pod, policy) or None,
        volume_mounts=agent_volume_mounts(pod, policy),
        readiness_probe=V1Probe(_exec=V1ExecAction(command=list(READINESS_COMMAND))),
    )


def init_container(agent_image: str) -> V1Container:
    """Return the init container that sets up traffic redirection to the agent."""
    return V1Container(
        name=INIT_CONTAINER_NAME,
        image=agent_image,
        args=list(INIT_ARGS),
        volume_mounts=[V1VolumeMount(name=CONFIG_VOLUME_NAME, mount_path=CONFIG_MOUNT_POINT)],
        security_context=V1SecurityContext(
            capabilities=V1Capabilities(add=list(INIT_CAPABILITIES)),
        ),
    )
