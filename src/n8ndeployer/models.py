"""Shared domain models for n8n-deployer."""

import os
from dataclasses import dataclass, field
from typing import Tuple

from .constants import (
    DEFAULT_BASE_DIR,
    DEFAULT_SYSTEMD_DIR,
    DEFAULT_TIMEZONE,
    N8N_IMAGE,
    PROJECT_NAME,
    PROXY_IMAGE,
    UNIT_NAME,
)


@dataclass(frozen=True)
class DeploymentConfig:
    """Validated operator input, fixed for the rest of a run."""

    domain: str
    email: str
    auth_user: str
    auth_password: str = field(repr=False)
    ip_allowlist: Tuple[str, ...] = ()
    timezone: str = DEFAULT_TIMEZONE
    n8n_image: str = N8N_IMAGE
    proxy_image: str = PROXY_IMAGE


@dataclass(frozen=True)
class DirectoryLayout:
    """On-disk layout rooted at base_dir."""

    base_dir: str = DEFAULT_BASE_DIR
    systemd_dir: str = DEFAULT_SYSTEMD_DIR

    @property
    def data_dir(self) -> str:
        return os.path.join(self.base_dir, "data")

    @property
    def backup_dir(self) -> str:
        return os.path.join(self.base_dir, "backups")

    @property
    def proxy_dir(self) -> str:
        return os.path.join(self.base_dir, "traefik")

    @property
    def acme_dir(self) -> str:
        return os.path.join(self.proxy_dir, "acme")

    @property
    def acme_file(self) -> str:
        return os.path.join(self.acme_dir, "acme.json")

    @property
    def env_file(self) -> str:
        return os.path.join(self.base_dir, ".env")

    @property
    def proxy_static_file(self) -> str:
        return os.path.join(self.proxy_dir, "traefik.yaml")

    @property
    def proxy_dynamic_file(self) -> str:
        return os.path.join(self.proxy_dir, "dynamic.yaml")

    @property
    def compose_file(self) -> str:
        return os.path.join(self.base_dir, "docker-compose.yml")

    @property
    def backup_script(self) -> str:
        return os.path.join(self.base_dir, "backup_n8n.sh")

    @property
    def manifest_file(self) -> str:
        return os.path.join(self.base_dir, "install-manifest.json")

    @property
    def unit_file(self) -> str:
        return os.path.join(self.systemd_dir, UNIT_NAME)

    def directories(self) -> Tuple[str, ...]:
        return (self.base_dir, self.data_dir, self.backup_dir, self.proxy_dir, self.acme_dir)


@dataclass(frozen=True)
class RenderedArtifact:
    name: str
    path: str
    content: str
    mode: int


@dataclass(frozen=True)
class ManagedStack:
    """Compose project supervised by systemd once launched."""

    compose_file: str
    working_dir: str
    project_name: str = PROJECT_NAME
    proxy_service: str = "traefik"
    services: Tuple[str, ...] = ("traefik", "n8n")


@dataclass(frozen=True)
class ScheduledJob:
    """A crontab entry. Two jobs are the same job when their commands match."""

    schedule: str
    command: str

    @property
    def line(self) -> str:
        return f"{self.schedule} {self.command}"
