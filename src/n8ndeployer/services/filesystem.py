"""Filesystem helpers for n8n-deployer."""

import logging
import os
import sys
import tempfile
from typing import Optional

from rich.console import Console

from n8ndeployer.constants import DIR_MODE, N8N_CONTAINER_GID, N8N_CONTAINER_UID, SECRET_MODE
from n8ndeployer.errors import DeployerError
from n8ndeployer.errors_catalog import actionable_error
from n8ndeployer.models import DirectoryLayout, RenderedArtifact


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: logging.Logger, console: Console):
        self.logger = logger
        self.console = console

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except Exception as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def set_owner(self, path: str, uid: int, gid: int):
        if sys.platform == "win32":
            return

        try:
            os.chown(path, uid, gid)
        except Exception as exc:
            self.logger.warning("Could not change owner of %s to %s:%s: %s", path, uid, gid, exc)

    def set_tree_owner(self, root: str, uid: int, gid: int):
        self.set_owner(root, uid, gid)
        for current, dirnames, filenames in os.walk(root):
            for name in dirnames + filenames:
                self.set_owner(os.path.join(current, name), uid, gid)

    def ensure_secret_file(self, path: str):
        """Create path if missing and force owner-only access, on every call."""
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT, SECRET_MODE)
            os.close(fd)
            os.chmod(path, SECRET_MODE)
        except OSError as exc:
            raise DeployerError(actionable_error("write_failed", path=path, reason=str(exc))) from exc

    def initialize_layout(
        self,
        layout: DirectoryLayout,
        data_uid: int = N8N_CONTAINER_UID,
        data_gid: int = N8N_CONTAINER_GID,
        manage_owner: Optional[bool] = None,
    ):
        """Create the deployment tree under layout.base_dir.

        Ownership is only changed when running as root unless manage_owner
        says otherwise.
        """
        if manage_owner is None:
            manage_owner = hasattr(os, "geteuid") and os.geteuid() == 0

        self.logger.info("Setting up directory structure under %s", layout.base_dir)
        for directory in layout.directories():
            try:
                os.makedirs(directory, exist_ok=True)
            except OSError as exc:
                raise DeployerError(
                    actionable_error("write_failed", path=directory, reason=str(exc))
                ) from exc
            self.set_permissions(directory, DIR_MODE)
            if manage_owner:
                self.set_owner(directory, 0, 0)

        if manage_owner:
            self.set_owner(layout.data_dir, data_uid, data_gid)

        self.ensure_secret_file(layout.acme_file)

    def read_text(self, path: str) -> Optional[str]:
        try:
            with open(path, "r", encoding="utf-8") as file_obj:
                return file_obj.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise DeployerError(f"Could not read {path}: {exc}") from exc

    def write_artifact(self, artifact: RenderedArtifact) -> bool:
        """Atomically replace artifact.path. Returns True when the content changed."""
        changed = self.read_text(artifact.path) != artifact.content
        directory = os.path.dirname(artifact.path) or "."

        temp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, temp_path = tempfile.mkstemp(prefix=".n8ndeployer-", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(artifact.content)
            os.chmod(temp_path, artifact.mode)
            os.replace(temp_path, artifact.path)
            temp_path = None
        except OSError as exc:
            raise DeployerError(
                actionable_error("write_failed", path=artifact.path, reason=str(exc))
            ) from exc
        finally:
            if temp_path and os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

        self.logger.debug("%s %s", "Wrote" if changed else "Unchanged", artifact.path)
        return changed
