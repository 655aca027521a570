"""Pairing of container policies with the Pod's application containers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kubernetes.client import V1Container, V1Pod

    from trafficagent.config import ContainerPolicy, SidecarPolicy

logger = logging.getLogger(__name__)


def _pod_containers(pod: V1Pod) -> list[V1Container]:
    if pod.spec is None or not pod.spec.containers:
        return []
    return pod.spec.containers


def matched_containers(
    pod: V1Pod, policy: SidecarPolicy
) -> Iterator[tuple[V1Container, ContainerPolicy]]:
    """Yield ``(app_container, container_policy)`` pairs.

    Pairs come in the order the container policies are declared. Each policy
    is paired with the first Pod container carrying its name; a policy with
    no such container (e.g. mid-rollout) yields nothing.
    """
    containers = _pod_containers(pod)
    for cc in policy.containers:
        for app in containers:
            if app.name == cc.name:
                yield app, cc
                break
        else:
            logger.debug("No container named %s in pod, skipping", cc.name)


def each_container(
    pod: V1Pod,
    policy: SidecarPolicy,
    visit: Callable[[V1Container, ContainerPolicy], None],
) -> None:
    """Call ``visit`` once for every matched container, see matched_containers()."""
    for app, cc in matched_containers(pod, policy):
        visit(app, cc)
