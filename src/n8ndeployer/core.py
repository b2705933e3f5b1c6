import logging
import os
import subprocess
import sys
import uuid
from typing import Any, Dict, List, Optional

from rich.console import Console

from .constants import N8N_CONTAINER_GID, N8N_CONTAINER_UID
from .errors import ConfigurationError, DeployerError
from .errors_catalog import actionable_error
from .models import DeploymentConfig, DirectoryLayout, ManagedStack, RenderedArtifact
from .services.backup import BackupService
from .services.command_runner import CommandRunner
from .services.docker_runtime import DockerRuntimeService
from .services.filesystem import FileSystemService
from .services.host import HostService
from .services.manifest import ManifestService
from .services.renderer import ConfigRenderer
from .services.scheduler import CronService
from .services.systemd import SystemdService

console = Console()
logger = logging.getLogger("n8ndeployer")


class N8NDeployer:
    def __init__(
        self,
        config: Optional[DeploymentConfig] = None,
        layout: Optional[DirectoryLayout] = None,
        skip_upgrade: bool = False,
        dry_run: bool = False,
        python_executable: Optional[str] = None,
        command_runner: Optional[CommandRunner] = None,
        host_service: Optional[HostService] = None,
    ):
        self.config = config
        self.layout = layout or DirectoryLayout()
        self.skip_upgrade = skip_upgrade
        self.dry_run = dry_run
        self.python_executable = python_executable or sys.executable
        self.run_id = uuid.uuid4().hex[:10]
        self.proxy_reload_needed = False

        self.stack = ManagedStack(
            compose_file=self.layout.compose_file, working_dir=self.layout.base_dir
        )
        self.command_runner = command_runner or CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.host_service = host_service or HostService(logger=logger, console=console)
        self.renderer = ConfigRenderer()
        self.docker_runtime_service = DockerRuntimeService(logger=logger, console=console)
        self.systemd_service = SystemdService(
            logger=logger,
            console=console,
            filesystem_service=self.filesystem_service,
        )
        self.cron_service = CronService(logger=logger, console=console)
        self.backup_service = BackupService(logger=logger, console=console)
        self.manifest_service = ManifestService(
            manifest_file=self.layout.manifest_file,
            logger=logger,
            enabled=not dry_run,
        )

    def _require_config(self) -> DeploymentConfig:
        if self.config is None:
            raise ConfigurationError("No deployment configuration was provided.")
        return self.config

    def _build_manifest_metadata(self) -> Dict[str, Any]:
        config = self._require_config()
        return {
            "domain": config.domain,
            "email": config.email,
            "auth_user": config.auth_user,
            "ip_allowlist": list(config.ip_allowlist),
            "n8n_image": config.n8n_image,
            "proxy_image": config.proxy_image,
            "base_dir": self.layout.base_dir,
            "skip_upgrade": self.skip_upgrade,
        }

    def _run_step(self, name: str, callback, *args, **kwargs):
        self.manifest_service.step_started(name)

        try:
            result = callback(*args, **kwargs)
        except KeyboardInterrupt:
            self.manifest_service.step_finished(name, "aborted", error="Operation cancelled by user.")
            raise
        except Exception as exc:
            self.manifest_service.step_finished(name, "failed", error=str(exc))
            raise

        self.manifest_service.step_finished(name, "success")
        return result

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        **kwargs,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, **kwargs)

    def check_privileges(self):
        self.host_service.ensure_privileges()

    def prepare_host(self):
        console.print("[blue]Updating and installing prerequisites...[/blue]")
        self.host_service.update_packages(self._run_cmd, upgrade=not self.skip_upgrade)
        self.host_service.install_prerequisites(self._run_cmd)
        self.host_service.ensure_docker(self._run_cmd)
        self.host_service.ensure_compose(self._run_cmd)

    def initialize_layout(self):
        self.filesystem_service.initialize_layout(self.layout)

    def render_artifacts(self) -> List[RenderedArtifact]:
        return self.renderer.render_all(self._require_config(), self.layout)

    def _stack_artifacts(self) -> List[RenderedArtifact]:
        return [artifact for artifact in self.render_artifacts() if artifact.name != "unit"]

    def _unit_artifact(self) -> RenderedArtifact:
        return self.renderer.render_unit(self.layout)

    def _backup_script_artifact(self) -> RenderedArtifact:
        return self.renderer.render_backup_script(self.layout, self.python_executable)

    def write_artifacts(self):
        logger.info("Rendering configuration under %s", self.layout.base_dir)
        for artifact in self._stack_artifacts():
            existed = os.path.exists(artifact.path)
            changed = self.filesystem_service.write_artifact(artifact)
            # Traefik only reads its static file at startup.
            if artifact.name == "proxy_static" and changed and existed:
                self.proxy_reload_needed = True
            self.manifest_service.add_artifact(artifact.name, artifact.path, artifact.mode, changed)

    def launch_stack(self):
        self.docker_runtime_service.up(self.stack, self._run_cmd)
        if self.proxy_reload_needed:
            self.docker_runtime_service.restart_proxy(self.stack, self._run_cmd)
            self.proxy_reload_needed = False

    def register_service(self):
        unit = self._unit_artifact()
        changed = self.systemd_service.install_unit(unit, self._run_cmd)
        self.manifest_service.add_artifact(unit.name, unit.path, unit.mode, changed)

    def schedule_jobs(self):
        script = self._backup_script_artifact()
        changed = self.filesystem_service.write_artifact(script)
        self.manifest_service.add_artifact(script.name, script.path, script.mode, changed)
        self.cron_service.upsert(self.cron_service.default_jobs(self.layout), self._run_cmd)

    def show_plan(self):
        """Print what install would write, without touching the host."""
        config = self._require_config()
        console.print("[bold blue]Dry run: no changes will be made.[/bold blue]")
        console.print(f"Domain: {config.domain}")
        console.print(f"Base directory: {self.layout.base_dir}")
        allowlist = ", ".join(config.ip_allowlist) or "<disabled>"
        console.print(f"IP allowlist: {allowlist}")

        artifacts = self.render_artifacts() + [self._backup_script_artifact()]
        for artifact in artifacts:
            console.print(f"[cyan]{artifact.path}[/cyan] (mode {oct(artifact.mode)})")
            if artifact.name in ("env", "proxy_dynamic"):
                console.print("[dim]  <contains credentials, not shown>[/dim]")
                continue
            console.print(artifact.content, markup=False, highlight=False)

        for job in self.cron_service.default_jobs(self.layout):
            console.print(f"[cyan]cron[/cyan] {job.line}", highlight=False)

    def _handle_failure(self, exc: BaseException, unexpected: bool = False) -> int:
        if unexpected:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
        else:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error(str(exc))
        return 1

    def run(self) -> int:
        """Full install: privileges, host, layout, artifacts, stack, unit, cron."""
        manifest_status = "failed"
        manifest_error: Optional[str] = None

        try:
            logger.info("Starting n8n-deployer...")
            config = self._require_config()

            if self.dry_run:
                self.show_plan()
                manifest_status = "success"
                return 0

            # Nothing may touch the host before this passes.
            self.check_privileges()
            self.manifest_service.start_run(self.run_id, self._build_manifest_metadata())

            self._run_step("prepare_host", self.prepare_host)
            self._run_step("initialize_layout", self.initialize_layout)
            self._run_step("write_artifacts", self.write_artifacts)
            self._run_step("launch_stack", self.launch_stack)
            self._run_step("register_service", self.register_service)
            self._run_step("schedule_jobs", self.schedule_jobs)

            console.print("[bold green]n8n has been installed and deployed successfully![/bold green]")
            console.print(f"Access your instance at: https://{config.domain}")
            console.print(f"Backups stored in: {self.layout.backup_dir}")
            manifest_status = "success"
            return 0

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            manifest_status = "aborted"
            manifest_error = "Operation cancelled by user."
            return 1
        except DeployerError as exc:
            manifest_error = str(exc)
            return self._handle_failure(exc)
        except Exception as exc:
            manifest_error = str(exc)
            return self._handle_failure(exc, unexpected=True)
        finally:
            if self.manifest_service.manifest["started_at"]:
                self.manifest_service.finalize(manifest_status, error=manifest_error)

    def backup(self) -> int:
        try:
            self.backup_service.create_backup(self.layout.data_dir, self.layout.backup_dir)
            return 0
        except DeployerError as exc:
            return self._handle_failure(exc)

    def list_backups(self) -> int:
        archives = self.backup_service.list_backups(self.layout.backup_dir)
        if not archives:
            console.print(f"[yellow]No backups found in {self.layout.backup_dir}[/yellow]")
        for archive in archives:
            console.print(archive, highlight=False)
        return 0

    def restore(self, archive_path: str) -> int:
        """Stop the stack, restore the archive into the data directory, start again."""
        try:
            self.check_privileges()
            if not os.path.isfile(archive_path):
                raise DeployerError(actionable_error("backup_not_found", path=archive_path))

            self.docker_runtime_service.down(self.stack, self._run_cmd)
            try:
                self.backup_service.restore_backup(archive_path, self.layout.data_dir)
                self.filesystem_service.set_tree_owner(
                    self.layout.data_dir, N8N_CONTAINER_UID, N8N_CONTAINER_GID
                )
            finally:
                self.docker_runtime_service.up(self.stack, self._run_cmd)
            return 0
        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            return 1
        except DeployerError as exc:
            return self._handle_failure(exc)

    def update(self) -> int:
        try:
            self.check_privileges()
            self.docker_runtime_service.update(self.stack, self._run_cmd)
            console.print("[green]Stack updated.[/green]")
            return 0
        except DeployerError as exc:
            return self._handle_failure(exc)
