"""Volume mounts of the traffic-agent container.

The agent mounts every volume its application containers mount, relocated
below each container policy's ``mountPoint`` so that mounts from different
containers never collide. Two kinds of mount are treated specially:

- mounts named in the ``inject-ignore-volume-mounts`` Pod annotation are
  not copied at all;
- credential mounts (below ``/var/run/secrets/``) keep their path, because
  client libraries look for service account tokens there. Since every
  container typically mounts the same token, only the first one is kept.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING

from kubernetes.client import V1VolumeMount

from trafficagent.constants import (
    ANNOTATION_MOUNT_POINT,
    ANNOTATION_VOLUME_NAME,
    CONFIG_MOUNT_POINT,
    CONFIG_VOLUME_NAME,
    CREDENTIALS_PATH_PREFIX,
    EXPORTS_MOUNT_POINT,
    EXPORTS_VOLUME_NAME,
    IGNORE_VOLUME_MOUNTS_ANNOTATION,
)
from trafficagent.matcher import matched_containers

if TYPE_CHECKING:
    from kubernetes.client import V1Container, V1Pod

    from trafficagent.config import ContainerPolicy, SidecarPolicy

logger = logging.getLogger(__name__)


def is_credentials_path(path: str) -> bool:
    return path.startswith(CREDENTIALS_PATH_PREFIX)


def relocate_mount_path(mount_point: str, path: str) -> str:
    """Return ``path`` relocated below ``mount_point``.

    A single leading slash is stripped first, so ``/data`` under ``/app``
    becomes ``/app/data``.
    """
    if path.startswith("/"):
        path = path[1:]
    return mount_point + "/" + path


def ignored_volume_mounts(annotations: dict[str, str] | None) -> frozenset[str]:
    """Parse the comma separated ignore list from the Pod annotations."""
    value = (annotations or {}).get(IGNORE_VOLUME_MOUNTS_ANNOTATION, "")
    return frozenset(name.strip() for name in value.split(",") if name.strip())


def app_container_volume_mounts(
    app: V1Container,
    cc: ContainerPolicy,
    ignored: frozenset[str],
    credentials_mounted: bool,
) -> tuple[list[V1VolumeMount], bool]:
    """Copy the volume mounts of ``app`` for use in the agent.

    Args:
        app: Application container. Not modified.
        cc: Policy of the application container.
        ignored: Names of volume mounts that must not be copied.
        credentials_mounted: Whether a credential mount has already been
            emitted for an earlier container.

    Returns:
        The copied mounts, and whether a credential mount has been emitted
        so far (to be passed on to the next container).
    """
    mounts: list[V1VolumeMount] = []
    for m in app.volume_mounts or []:
        if m.name in ignored:
            logger.debug("Container %s: ignoring volume mount %s", cc.name, m.name)
            continue
        m = copy.copy(m)
        if is_credentials_path(m.mount_path):
            if credentials_mounted:
                logger.debug(
                    "Container %s: credential mount %s already added, skipping %s",
                    cc.name,
                    CREDENTIALS_PATH_PREFIX,
                    m.mount_path,
                )
                continue
            credentials_mounted = True
        else:
            m.mount_path = relocate_mount_path(cc.mount_point, m.mount_path)
        mounts.append(m)
    return mounts, credentials_mounted


def agent_volume_mounts(pod: V1Pod, policy: SidecarPolicy) -> list[V1VolumeMount]:
    """Build the complete volume mount list of the agent container.

    App mounts come first, in container policy order, followed by the
    agent's annotation, config and exports mounts.
    """
    annotations = pod.metadata.annotations if pod.metadata is not None else None
    ignored = ignored_volume_mounts(annotations)

    mounts: list[V1VolumeMount] = []
    credentials_mounted = False
    for app, cc in matched_containers(pod, policy):
        app_mounts, credentials_mounted = app_container_volume_mounts(
            app, cc, ignored, credentials_mounted
        )
        mounts.extend(app_mounts)

    mounts.extend(
        [
            V1VolumeMount(name=ANNOTATION_VOLUME_NAME, mount_path=ANNOTATION_MOUNT_POINT),
            V1VolumeMount(name=CONFIG_VOLUME_NAME, mount_path=CONFIG_MOUNT_POINT),
            V1VolumeMount(name=EXPORTS_VOLUME_NAME, mount_path=EXPORTS_MOUNT_POINT),
        ]
    )
    return mounts
