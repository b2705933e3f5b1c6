"""Crontab management with idempotent upserts."""

from typing import Callable, List, Optional, Tuple

from n8ndeployer.constants import BACKUP_SCHEDULE, OS_UPDATE_COMMAND, OS_UPDATE_SCHEDULE
from n8ndeployer.errors import DeployerError
from n8ndeployer.models import DirectoryLayout, ScheduledJob


class CronService:
    """Reads and rewrites root's crontab through the ``crontab`` binary."""

    NO_CRONTAB_MARKER = "no crontab for"

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    @staticmethod
    def default_jobs(layout: DirectoryLayout) -> List[ScheduledJob]:
        return [
            ScheduledJob(schedule=BACKUP_SCHEDULE, command=layout.backup_script),
            ScheduledJob(schedule=OS_UPDATE_SCHEDULE, command=OS_UPDATE_COMMAND),
        ]

    @staticmethod
    def split_entry(line: str) -> Optional[Tuple[str, str]]:
        """Split a crontab line into (schedule, command); None for non-job lines."""
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            return None

        if stripped.startswith("@"):
            parts = stripped.split(None, 1)
            if len(parts) < 2:
                return None
            return parts[0], parts[1].strip()

        parts = stripped.split(None, 5)
        if len(parts) < 6:
            # Variable assignments such as MAILTO=... end up here.
            return None
        return " ".join(parts[:5]), parts[5].strip()

    def read(self, run_cmd: Callable) -> str:
        result = run_cmd(["crontab", "-l"], check=False, capture_output=True)
        if result.returncode == 0:
            return result.stdout or ""

        stderr = (result.stderr or "").strip()
        if self.NO_CRONTAB_MARKER in stderr.lower():
            return ""
        raise DeployerError(
            f"Could not read crontab (exit {result.returncode}): {stderr or 'no error output'}"
        )

    def write(self, content: str, run_cmd: Callable):
        run_cmd(["crontab", "-"], input_text=content, capture_output=True)

    def merge(self, content: str, job: ScheduledJob) -> Tuple[str, bool]:
        """Return crontab content containing job exactly once, plus a changed flag.

        An entry with the same command is the same job: an identical line is
        kept as is, a different schedule is rewritten in place, and any further
        copies are dropped.
        """
        lines = content.splitlines()
        merged: List[str] = []
        found = False
        changed = False

        for line in lines:
            entry = self.split_entry(line)
            if entry is None or entry[1] != job.command:
                merged.append(line)
                continue

            if found:
                changed = True
                continue

            found = True
            if entry[0] != job.schedule:
                changed = True
                merged.append(job.line)
            else:
                merged.append(line)

        if not found:
            merged.append(job.line)
            changed = True

        return "\n".join(merged) + "\n", changed

    def upsert(self, jobs: List[ScheduledJob], run_cmd: Callable) -> bool:
        current = self.read(run_cmd)
        content = current
        changed = False
        for job in jobs:
            content, job_changed = self.merge(content, job)
            if job_changed:
                self.logger.info("Scheduling: %s", job.line)
            else:
                self.logger.info("Already scheduled: %s", job.line)
            changed = changed or job_changed

        if changed:
            self.write(content, run_cmd)
        return changed
