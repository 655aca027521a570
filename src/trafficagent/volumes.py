"""Volumes required by the traffic-agent container."""

from __future__ import annotations

from kubernetes.client import (
    V1ConfigMapVolumeSource,
    V1DownwardAPIVolumeFile,
    V1DownwardAPIVolumeSource,
    V1EmptyDirVolumeSource,
    V1KeyToPath,
    V1ObjectFieldSelector,
    V1Volume,
)

from trafficagent.constants import (
    ANNOTATION_VOLUME_NAME,
    CONFIG_FILE,
    CONFIG_MAP,
    CONFIG_VOLUME_NAME,
    EXPORTS_VOLUME_NAME,
)


def agent_volumes(agent_name: str) -> list[V1Volume]:
    """Return the annotation, config and exports volumes of the agent.

    When ``agent_name`` is given, only that key of the agents config map is
    projected, as ``config.yaml``. Otherwise every key is projected.
    """
    items = None
    if agent_name:
        items = [V1KeyToPath(key=agent_name, path=CONFIG_FILE)]

    return [
        V1Volume(
            name=ANNOTATION_VOLUME_NAME,
            downward_api=V1DownwardAPIVolumeSource(
                items=[
                    V1DownwardAPIVolumeFile(
                        field_ref=V1ObjectFieldSelector(
                            api_version="v1", field_path="metadata.annotations"
                        ),
                        path="annotations",
                    )
                ]
            ),
        ),
        V1Volume(
            name=CONFIG_VOLUME_NAME,
            config_map=V1ConfigMapVolumeSource(name=CONFIG_MAP, items=items),
        ),
        V1Volume(
            name=EXPORTS_VOLUME_NAME,
            empty_dir=V1EmptyDirVolumeSource(),
        ),
    ]
