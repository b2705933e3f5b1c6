"""Host preparation for n8n-deployer: privileges, apt packages, Docker."""

import os
import shutil
from typing import Callable, Optional

import requests
from packaging import version

from n8ndeployer.constants import (
    APT_PREREQUISITES,
    COMPOSE_PACKAGE,
    DOCKER_APT_URL,
    DOCKER_GPG_URL,
    DOCKER_KEYRING,
    DOCKER_PACKAGES,
    DOCKER_SOURCES_LIST,
    MIN_COMPOSE_VERSION,
)
from n8ndeployer.errors import DeployerError
from n8ndeployer.errors_catalog import actionable_error

APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


class HostService:
    """Idempotently brings an Ubuntu host to a Docker-ready state.

    Every install step first checks whether its target is already present.
    There is no uninstall path.
    """

    def __init__(
        self,
        logger,
        console,
        requests_module=requests,
        which: Callable[[str], Optional[str]] = shutil.which,
        geteuid: Optional[Callable[[], int]] = None,
        keyring_path: str = DOCKER_KEYRING,
        sources_list_path: str = DOCKER_SOURCES_LIST,
    ):
        self.logger = logger
        self.console = console
        self.requests = requests_module
        self.which = which
        self.geteuid = geteuid or getattr(os, "geteuid", lambda: 0)
        self.keyring_path = keyring_path
        self.sources_list_path = sources_list_path

    def ensure_privileges(self):
        if self.geteuid() != 0:
            raise DeployerError(actionable_error("not_root"))

    def _apt(self, run_cmd: Callable, *args: str):
        run_cmd(["apt-get", *args], env=APT_ENV, retry_count=1, retry_backoff_seconds=10.0)

    def update_packages(self, run_cmd: Callable, upgrade: bool = True):
        self.console.print("[blue]Updating package lists...[/blue]")
        self._apt(run_cmd, "update")
        if upgrade:
            self.console.print("[blue]Upgrading installed packages...[/blue]")
            self._apt(run_cmd, "upgrade", "-y")

    def install_prerequisites(self, run_cmd: Callable):
        self.logger.info("Installing prerequisites: %s", " ".join(APT_PREREQUISITES))
        self._apt(run_cmd, "install", "-y", *APT_PREREQUISITES)

    def is_docker_installed(self) -> bool:
        return self.which("docker") is not None

    def fetch_docker_key(self) -> bytes:
        try:
            response = self.requests.get(DOCKER_GPG_URL, timeout=60)
            response.raise_for_status()
        except self.requests.RequestException as exc:
            raise DeployerError(f"Could not download Docker signing key: {exc}") from exc
        return response.content

    def install_docker(self, run_cmd: Callable):
        self.console.print("[blue]Installing Docker...[/blue]")
        key = self.fetch_docker_key()

        os.makedirs(os.path.dirname(self.keyring_path), exist_ok=True)
        run_cmd(
            ["gpg", "--dearmor", "--yes", "-o", self.keyring_path],
            input_text=key.decode("ascii", errors="replace"),
        )

        arch = run_cmd(["dpkg", "--print-architecture"], capture_output=True).stdout.strip()
        codename = run_cmd(["lsb_release", "-cs"], capture_output=True).stdout.strip()
        source_line = (
            f"deb [arch={arch} signed-by={self.keyring_path}] {DOCKER_APT_URL} {codename} stable\n"
        )
        try:
            with open(self.sources_list_path, "w", encoding="utf-8") as file_obj:
                file_obj.write(source_line)
        except OSError as exc:
            raise DeployerError(
                actionable_error("write_failed", path=self.sources_list_path, reason=str(exc))
            ) from exc

        self._apt(run_cmd, "update")
        self._apt(run_cmd, "install", "-y", *DOCKER_PACKAGES)

    def ensure_docker(self, run_cmd: Callable) -> bool:
        """Install Docker Engine when missing. Returns True when it was installed."""
        if self.is_docker_installed():
            self.logger.info("Docker already installed, skipping.")
            return False
        self.install_docker(run_cmd)
        return True

    def get_compose_version(self, run_cmd: Callable) -> Optional[version.Version]:
        result = run_cmd(
            ["docker", "compose", "version", "--short"],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            return None

        raw = (result.stdout or "").strip().lstrip("v")
        try:
            return version.parse(raw)
        except version.InvalidVersion:
            self.logger.warning("Could not parse Docker Compose version: %s", raw)
            return None

    def is_compose_available(self, run_cmd: Callable) -> bool:
        current = self.get_compose_version(run_cmd)
        return current is not None and current >= version.parse(MIN_COMPOSE_VERSION)

    def ensure_compose(self, run_cmd: Callable) -> bool:
        """Install the Compose v2 plugin when missing. Returns True when it was installed."""
        if self.is_compose_available(run_cmd):
            self.logger.info("Docker Compose plugin already installed, skipping.")
            return False

        self.console.print("[blue]Installing Docker Compose plugin...[/blue]")
        self._apt(run_cmd, "install", "-y", COMPOSE_PACKAGE)
        if not self.is_compose_available(run_cmd):
            raise DeployerError(actionable_error("compose_unavailable"))
        return True
