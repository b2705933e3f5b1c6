"""Docker Compose lifecycle for the managed n8n stack."""

from typing import Callable, List

from n8ndeployer.models import ManagedStack


class DockerRuntimeService:
    """Issues compose commands for the stack. It never waits on container health."""

    COMPOSE_CMD = ["docker", "compose"]

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def compose_cmd(self, stack: ManagedStack) -> List[str]:
        return self.COMPOSE_CMD + [
            "--project-name",
            stack.project_name,
            "--project-directory",
            stack.working_dir,
            "-f",
            stack.compose_file,
        ]

    def up(self, stack: ManagedStack, run_cmd: Callable):
        self.console.print("[blue]Bringing up containers using Docker Compose...[/blue]")
        self.logger.info("Starting services: %s", ", ".join(stack.services))
        run_cmd(self.compose_cmd(stack) + ["up", "-d"])

    def restart_proxy(self, stack: ManagedStack, run_cmd: Callable):
        """Restart the proxy so it reloads its static configuration."""
        self.console.print(f"[blue]Restarting {stack.proxy_service} to apply new settings...[/blue]")
        run_cmd(self.compose_cmd(stack) + ["restart", stack.proxy_service])

    def pull(self, stack: ManagedStack, run_cmd: Callable):
        self.console.print("[blue]Pulling latest images...[/blue]")
        run_cmd(self.compose_cmd(stack) + ["pull"], retry_count=1, retry_backoff_seconds=5.0)

    def update(self, stack: ManagedStack, run_cmd: Callable):
        """Pull newer images and recreate changed containers."""
        self.pull(stack, run_cmd)
        self.up(stack, run_cmd)

    def down(self, stack: ManagedStack, run_cmd: Callable):
        self.console.print("[dim]Stopping containers...[/dim]")
        self.logger.info("Stopping stack %s", stack.project_name)
        run_cmd(self.compose_cmd(stack) + ["down"])
