"""Fixed names and paths shared between the composer and the injector.

These values are read by the agent image and by whatever splices the
generated specs into a Pod template. Changing any of them requires a
migration path for already-injected workloads.
"""

from __future__ import annotations

# ── Containers ───────────────────────────────────────────────────────────────

CONTAINER_NAME = "traffic-agent"
INIT_CONTAINER_NAME = "tel-agent-init"

AGENT_ARGS = ["agent"]
INIT_ARGS = ["agent-init"]

# The agent creates this file once it is ready to serve intercepts.
READY_MARKER = "/tmp/agent/ready"
READINESS_COMMAND = ["/bin/stat", READY_MARKER]

INIT_CAPABILITIES = ["NET_ADMIN"]

# ── Volumes & mount points ───────────────────────────────────────────────────

ANNOTATION_VOLUME_NAME = "traffic-annotations"
ANNOTATION_MOUNT_POINT = "/tel_pod_info"

CONFIG_VOLUME_NAME = "traffic-config"
CONFIG_MOUNT_POINT = "/etc/traffic-agent"
CONFIG_MAP = "telepresence-agents"
CONFIG_FILE = "config.yaml"

EXPORTS_VOLUME_NAME = "export-volume"
EXPORTS_MOUNT_POINT = "/tel_app_exports"

# Mounts below this prefix are copied once, with their path unchanged.
CREDENTIALS_PATH_PREFIX = "/var/run/secrets/"

# ── Environment ──────────────────────────────────────────────────────────────

ENV_PREFIX = "_TEL_"
ENV_PREFIX_AGENT = ENV_PREFIX + "AGENT_"
ENV_PREFIX_APP = ENV_PREFIX + "APP_"
ENV_API_PORT = ENV_PREFIX_AGENT + "API_PORT"
ENV_POD_IP = ENV_PREFIX_AGENT + "POD_IP"
ENV_POD_NAME = ENV_PREFIX_AGENT + "NAME"

# ── Annotations ──────────────────────────────────────────────────────────────

DOMAIN_PREFIX = "telepresence.getambassador.io/"
IGNORE_VOLUME_MOUNTS_ANNOTATION = DOMAIN_PREFIX + "inject-ignore-volume-mounts"
INJECT_ANNOTATION = DOMAIN_PREFIX + "inject-traffic-agent"

# Kubernetes (IANA_SVC_NAME) limit on container port names.
MAX_PORT_NAME_LENGTH = 15
