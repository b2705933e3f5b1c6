"""Backup archive creation and safe restore for n8n state."""

import os
import tarfile
import tempfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from n8ndeployer.constants import BACKUP_PREFIX, BACKUP_TIMESTAMP_FORMAT, SECRET_MODE
from n8ndeployer.errors import DeployerError
from n8ndeployer.errors_catalog import actionable_error

ARCHIVE_SUFFIX = ".tar.gz"


class BackupService:
    """One timestamped tar.gz per invocation. Old archives are never pruned."""

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def archive_path(self, backup_dir: str, now: datetime) -> str:
        stem = f"{BACKUP_PREFIX}{now.strftime(BACKUP_TIMESTAMP_FORMAT)}"
        candidate = os.path.join(backup_dir, f"{stem}{ARCHIVE_SUFFIX}")
        counter = 1
        while os.path.exists(candidate):
            candidate = os.path.join(backup_dir, f"{stem}_{counter}{ARCHIVE_SUFFIX}")
            counter += 1
        return candidate

    def create_backup(self, data_dir: str, backup_dir: str, now: Optional[datetime] = None) -> str:
        if not os.path.isdir(data_dir):
            raise DeployerError(f"Data directory not found: {data_dir}")

        os.makedirs(backup_dir, exist_ok=True)
        target = self.archive_path(backup_dir, now or datetime.now())
        self.console.print(f"[blue]Creating backup at {target}...[/blue]")

        fd, temp_path = tempfile.mkstemp(prefix=".backup-", suffix=ARCHIVE_SUFFIX, dir=backup_dir)
        os.close(fd)
        try:
            with tarfile.open(temp_path, "w:gz") as archive:
                for name in sorted(os.listdir(data_dir)):
                    archive.add(os.path.join(data_dir, name), arcname=name)
            os.chmod(temp_path, SECRET_MODE)
            os.replace(temp_path, target)
        except (OSError, tarfile.TarError) as exc:
            raise DeployerError(f"Backup failed: {exc}") from exc
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

        self.logger.info("Backup completed: %s", target)
        return target

    def list_backups(self, backup_dir: str) -> List[str]:
        if not os.path.isdir(backup_dir):
            return []
        names = [
            name
            for name in os.listdir(backup_dir)
            if name.startswith(BACKUP_PREFIX) and name.endswith(ARCHIVE_SUFFIX)
        ]
        return [os.path.join(backup_dir, name) for name in sorted(names)]

    @staticmethod
    def is_within_dir(base_dir: Path, candidate: Path) -> bool:
        try:
            return os.path.commonpath([str(base_dir), str(candidate)]) == str(base_dir)
        except ValueError:
            return False

    def restore_backup(self, archive_path: str, data_dir: str):
        """Extract archive_path into data_dir, refusing entries that escape it."""
        if not os.path.isfile(archive_path):
            raise DeployerError(actionable_error("backup_not_found", path=archive_path))

        os.makedirs(data_dir, exist_ok=True)
        base = Path(data_dir).resolve()

        try:
            with tarfile.open(archive_path, "r:gz") as archive:
                members = archive.getmembers()
                for member in members:
                    target_path = (base / member.name).resolve()
                    if not self.is_within_dir(base, target_path):
                        raise DeployerError(
                            f"Unsafe archive entry detected: `{member.name}`. "
                            "Restore aborted to prevent path traversal."
                        )
                    if member.issym() or member.islnk():
                        raise DeployerError(
                            f"Unsafe archive entry detected: `{member.name}` is a link."
                        )
                    if not (member.isfile() or member.isdir()):
                        raise DeployerError(
                            f"Unsupported archive entry detected: `{member.name}`."
                        )

                self.console.print(f"[blue]Restoring {archive_path} into {data_dir}...[/blue]")
                for member in members:
                    target_path = base / member.name
                    if member.isdir():
                        target_path.mkdir(parents=True, exist_ok=True)
                        continue

                    target_path.parent.mkdir(parents=True, exist_ok=True)
                    source = archive.extractfile(member)
                    if source is None:
                        continue
                    with source, open(target_path, "wb") as destination:
                        destination.write(source.read())
                    os.chmod(target_path, member.mode & 0o777)
        except tarfile.TarError as exc:
            raise DeployerError(f"Invalid backup archive: {archive_path}") from exc

        self.logger.info("Restored %s into %s", archive_path, data_dir)
