"""Agent port deduplication."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trafficagent.config import ContainerPolicy, Intercept

logger = logging.getLogger(__name__)


def port_unique_intercepts(cc: ContainerPolicy) -> list[Intercept]:
    """Return the intercepts of ``cc`` that open distinct agent ports.

    A container policy may list the same agent port several times, e.g. when
    one container port is reachable through more than one service port. Only
    one container port entry may exist per listening port, so the first
    intercept for a port wins and later ones are dropped. Order is preserved.
    """
    seen: set[int] = set()
    unique: list[Intercept] = []
    for ic in cc.intercepts:
        if ic.agent_port in seen:
            logger.debug(
                "Container %s: agent port %d already opened, skipping intercept %s",
                cc.name,
                ic.agent_port,
                ic.container_port_name,
            )
            continue
        seen.add(ic.agent_port)
        unique.append(ic)
    return unique
