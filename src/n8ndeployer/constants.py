"""Fixed paths, modes and defaults for n8n-deployer."""

DEFAULT_BASE_DIR = "/opt/n8n"
DEFAULT_SYSTEMD_DIR = "/etc/systemd/system"

DIR_MODE = 0o750
FILE_MODE = 0o640
SECRET_MODE = 0o600
SCRIPT_MODE = 0o750
UNIT_MODE = 0o644

N8N_IMAGE = "n8nio/n8n:latest"
PROXY_IMAGE = "traefik:v2.11"
DEFAULT_TIMEZONE = "UTC"

# The n8n image runs as the "node" user.
N8N_CONTAINER_UID = 1000
N8N_CONTAINER_GID = 1000
N8N_PORT = 5678
N8N_HEALTH_URL = f"http://localhost:{N8N_PORT}/healthz"

PROJECT_NAME = "n8n"
UNIT_NAME = "n8n.service"
DOCKER_BINARY = "/usr/bin/docker"

CERT_RESOLVER = "letsencrypt"
AUTH_MIDDLEWARE = "n8n-auth"
ALLOWLIST_MIDDLEWARE = "ip-allowlist"

BACKUP_SCHEDULE = "0 3 * * *"
OS_UPDATE_SCHEDULE = "0 4 * * 0"
OS_UPDATE_COMMAND = "apt-get update && DEBIAN_FRONTEND=noninteractive apt-get upgrade -y"
BACKUP_PREFIX = "n8n_backup_"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%dT%H%M%S"

APT_PREREQUISITES = (
    "apt-transport-https",
    "ca-certificates",
    "curl",
    "gnupg",
    "lsb-release",
    "software-properties-common",
)
DOCKER_PACKAGES = ("docker-ce", "docker-ce-cli", "containerd.io")
COMPOSE_PACKAGE = "docker-compose-plugin"
DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_APT_URL = "https://download.docker.com/linux/ubuntu"
DOCKER_KEYRING = "/usr/share/keyrings/docker-archive-keyring.gpg"
DOCKER_SOURCES_LIST = "/etc/apt/sources.list.d/docker.list"
MIN_COMPOSE_VERSION = "2.0.0"
