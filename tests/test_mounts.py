"""Tests for the traffic-agent volume mount composition."""

from kubernetes.client import V1Container, V1ObjectMeta, V1Pod, V1PodSpec, V1VolumeMount

from trafficagent.config import ContainerPolicy, SidecarPolicy
from trafficagent.mounts import (
    agent_volume_mounts,
    app_container_volume_mounts,
    ignored_volume_mounts,
    relocate_mount_path,
)

_SA_PATH = "/var/run/secrets/kubernetes.io/serviceaccount"
_AGENT_MOUNTS = [
    ("traffic-annotations", "/tel_pod_info"),
    ("traffic-config", "/etc/traffic-agent"),
    ("export-volume", "/tel_app_exports"),
]


def _make_pod(*containers: V1Container, annotations: dict[str, str] | None = None) -> V1Pod:
    return V1Pod(
        metadata=V1ObjectMeta(name="pod", annotations=annotations),
        spec=V1PodSpec(containers=list(containers)),
    )


def _paths(mounts: list[V1VolumeMount]) -> list[tuple[str, str]]:
    return [(m.name, m.mount_path) for m in mounts]


class TestRelocateMountPath:
    def test_strips_single_leading_slash(self):
        assert relocate_mount_path("/app", "/data") == "/app/data"

    def test_relative_path(self):
        assert relocate_mount_path("/app", "data") == "/app/data"

    def test_only_one_slash_stripped(self):
        assert relocate_mount_path("/app", "//data") == "/app//data"

    def test_nested(self):
        assert relocate_mount_path("/tel_app_mounts/web", "/etc/nginx/conf.d") == (
            "/tel_app_mounts/web/etc/nginx/conf.d"
        )


class TestIgnoredVolumeMounts:
    def test_no_annotations(self):
        assert ignored_volume_mounts(None) == frozenset()
        assert ignored_volume_mounts({}) == frozenset()

    def test_splits_and_trims(self):
        annotations = {
            "telepresence.getambassador.io/inject-ignore-volume-mounts": " cache , tmp,logs "
        }
        assert ignored_volume_mounts(annotations) == {"cache", "tmp", "logs"}

    def test_empty_entries_dropped(self):
        annotations = {"telepresence.getambassador.io/inject-ignore-volume-mounts": "a,,  ,b"}
        assert ignored_volume_mounts(annotations) == {"a", "b"}

    def test_other_annotations_ignored(self):
        assert ignored_volume_mounts({"example.com/ignore": "cache"}) == frozenset()


class TestAppContainerVolumeMounts:
    def test_relocates_and_preserves_fields(self):
        app = V1Container(
            name="web",
            volume_mounts=[
                V1VolumeMount(name="data", mount_path="/data", read_only=True, sub_path="x")
            ],
        )
        mounts, credentials = app_container_volume_mounts(
            app, ContainerPolicy(name="web", mount_point="/app"), frozenset(), False
        )
        assert mounts == [
            V1VolumeMount(name="data", mount_path="/app/data", read_only=True, sub_path="x")
        ]
        assert credentials is False

    def test_source_mount_not_modified(self):
        original = V1VolumeMount(name="data", mount_path="/data")
        app = V1Container(name="web", volume_mounts=[original])
        app_container_volume_mounts(
            app, ContainerPolicy(name="web", mount_point="/app"), frozenset(), False
        )
        assert original.mount_path == "/data"

    def test_credentials_kept_in_place(self):
        app = V1Container(
            name="web", volume_mounts=[V1VolumeMount(name="token", mount_path=_SA_PATH)]
        )
        mounts, credentials = app_container_volume_mounts(
            app, ContainerPolicy(name="web", mount_point="/app"), frozenset(), False
        )
        assert _paths(mounts) == [("token", _SA_PATH)]
        assert credentials is True

    def test_credentials_skipped_when_already_mounted(self):
        app = V1Container(
            name="web",
            volume_mounts=[
                V1VolumeMount(name="token", mount_path=_SA_PATH),
                V1VolumeMount(name="data", mount_path="/data"),
            ],
        )
        mounts, credentials = app_container_volume_mounts(
            app, ContainerPolicy(name="web", mount_point="/app"), frozenset(), True
        )
        assert _paths(mounts) == [("data", "/app/data")]
        assert credentials is True

    def test_ignored(self):
        app = V1Container(
            name="web",
            volume_mounts=[
                V1VolumeMount(name="cache", mount_path="/cache"),
                V1VolumeMount(name="data", mount_path="/data"),
            ],
        )
        mounts, _ = app_container_volume_mounts(
            app, ContainerPolicy(name="web", mount_point="/app"), frozenset({"cache"}), False
        )
        assert _paths(mounts) == [("data", "/app/data")]

    def test_no_mounts(self):
        mounts, credentials = app_container_volume_mounts(
            V1Container(name="web"), ContainerPolicy(name="web"), frozenset(), False
        )
        assert mounts == []
        assert credentials is False


class TestAgentVolumeMounts:
    def test_only_agent_mounts_without_app_mounts(self):
        pod = _make_pod(V1Container(name="web"))
        policy = SidecarPolicy(agent_image="tel2:latest", containers=[{"name": "web"}])
        assert _paths(agent_volume_mounts(pod, policy)) == _AGENT_MOUNTS

    def test_app_mounts_before_agent_mounts(self):
        pod = _make_pod(
            V1Container(name="web", volume_mounts=[V1VolumeMount(name="data", mount_path="/data")])
        )
        policy = SidecarPolicy(
            agent_image="tel2:latest", containers=[{"name": "web", "mountPoint": "/app"}]
        )
        assert _paths(agent_volume_mounts(pod, policy)) == [("data", "/app/data")] + _AGENT_MOUNTS

    def test_credentials_mounted_once_across_containers(self):
        pod = _make_pod(
            V1Container(name="a", volume_mounts=[V1VolumeMount(name="tok-a", mount_path=_SA_PATH)]),
            V1Container(name="b", volume_mounts=[V1VolumeMount(name="tok-b", mount_path=_SA_PATH)]),
        )
        policy = SidecarPolicy(
            agent_image="tel2:latest",
            containers=[{"name": "a", "mountPoint": "/a"}, {"name": "b", "mountPoint": "/b"}],
        )
        mounts = agent_volume_mounts(pod, policy)
        credential_mounts = [m for m in mounts if m.mount_path.startswith("/var/run/secrets/")]
        assert _paths(credential_mounts) == [("tok-a", _SA_PATH)]

    def test_first_credentials_follow_policy_order(self):
        pod = _make_pod(
            V1Container(name="a", volume_mounts=[V1VolumeMount(name="tok-a", mount_path=_SA_PATH)]),
            V1Container(name="b", volume_mounts=[V1VolumeMount(name="tok-b", mount_path=_SA_PATH)]),
        )
        policy = SidecarPolicy(
            agent_image="tel2:latest", containers=[{"name": "b"}, {"name": "a"}]
        )
        assert _paths(agent_volume_mounts(pod, policy))[0] == ("tok-b", _SA_PATH)

    def test_ignore_annotation(self):
        pod = _make_pod(
            V1Container(
                name="web",
                volume_mounts=[
                    V1VolumeMount(name="cache", mount_path="/cache"),
                    V1VolumeMount(name="data", mount_path="/data"),
                ],
            ),
            annotations={"telepresence.getambassador.io/inject-ignore-volume-mounts": "cache"},
        )
        policy = SidecarPolicy(
            agent_image="tel2:latest", containers=[{"name": "web", "mountPoint": "/app"}]
        )
        names = [m.name for m in agent_volume_mounts(pod, policy)]
        assert "cache" not in names
        assert "data" in names

    def test_ignore_annotation_applies_to_credentials(self):
        pod = _make_pod(
            V1Container(name="web", volume_mounts=[V1VolumeMount(name="tok", mount_path=_SA_PATH)]),
            annotations={"telepresence.getambassador.io/inject-ignore-volume-mounts": "tok"},
        )
        policy = SidecarPolicy(agent_image="tel2:latest", containers=[{"name": "web"}])
        assert _paths(agent_volume_mounts(pod, policy)) == _AGENT_MOUNTS

    def test_distinct_mount_points_avoid_collisions(self):
        pod = _make_pod(
            V1Container(
                name="a", volume_mounts=[V1VolumeMount(name="cfg-a", mount_path="/etc/cfg")]
            ),
            V1Container(
                name="b", volume_mounts=[V1VolumeMount(name="cfg-b", mount_path="/etc/cfg")]
            ),
        )
        policy = SidecarPolicy(
            agent_image="tel2:latest",
            containers=[
                {"name": "a", "mountPoint": "/tel_app_mounts/a"},
                {"name": "b", "mountPoint": "/tel_app_mounts/b"},
            ],
        )
        assert _paths(agent_volume_mounts(pod, policy))[:2] == [
            ("cfg-a", "/tel_app_mounts/a/etc/cfg"),
            ("cfg-b", "/tel_app_mounts/b/etc/cfg"),
        ]

    def test_pod_without_metadata(self):
        pod = V1Pod(spec=V1PodSpec(containers=[V1Container(name="web")]))
        policy = SidecarPolicy(agent_image="tel2:latest", containers=[{"name": "web"}])
        assert _paths(agent_volume_mounts(pod, policy)) == _AGENT_MOUNTS
