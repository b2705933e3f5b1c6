"""systemd registration for the managed stack."""

from typing import Callable

from n8ndeployer.constants import UNIT_NAME
from n8ndeployer.models import RenderedArtifact


class SystemdService:
    """Installs the one-shot unit so the stack comes back after reboots."""

    def __init__(self, logger, console, filesystem_service, unit_name: str = UNIT_NAME):
        self.logger = logger
        self.console = console
        self.filesystem_service = filesystem_service
        self.unit_name = unit_name

    def install_unit(self, unit: RenderedArtifact, run_cmd: Callable) -> bool:
        self.console.print(f"[blue]Registering {self.unit_name} with systemd...[/blue]")
        changed = self.filesystem_service.write_artifact(unit)

        run_cmd(["systemctl", "daemon-reload"])
        run_cmd(["systemctl", "enable", self.unit_name])
        run_cmd(["systemctl", "start", self.unit_name])
        return changed

