"""Filesystem helpers for Nodesmith."""

import logging
import os
import secrets
import sys
import tempfile
from typing import Iterable, List, Optional

from nodesmith.constants import SECRET_MODE
from nodesmith.errors import PathCreationError
from nodesmith.errors_catalog import actionable_error


class FileSystemService:
    """Encapsulates file and directory side effects."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger("nodesmith")

    def set_permissions(self, path: str, mode: int):
        if sys.platform == "win32":
            return

        try:
            os.chmod(path, mode)
        except OSError as exc:
            self.logger.warning("Could not set permissions on %s: %s", path, exc)

    def ensure_dir(self, path: str):
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise PathCreationError(
                actionable_error("path_creation_failed", path=path, reason=str(exc))
            ) from exc

    def write_text_atomic(self, path: str, content: str):
        """Writes through a temp file in the target directory, so readers never see half a file."""
        directory = os.path.dirname(os.path.abspath(path))
        fd, temp_path = tempfile.mkstemp(
            prefix=f".{os.path.basename(path)}-", suffix=".tmp", dir=directory
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as file_obj:
                file_obj.write(content)
            os.replace(temp_path, path)
        finally:
            if os.path.exists(temp_path):
                try:
                    os.remove(temp_path)
                except OSError:
                    pass

    def remove_files(self, paths: Iterable[str]) -> List[str]:
        """Removes files, returning the ones that could not be removed."""
        leftovers = []
        for path in paths:
            try:
                if os.path.exists(path):
                    os.remove(path)
            except OSError:
                leftovers.append(path)
        return leftovers

    def write_jwt_secret(self, path: str) -> str:
        self.ensure_dir(os.path.dirname(os.path.abspath(path)))
        self.write_text_atomic(path, secrets.token_hex(32))
        self.set_permissions(path, SECRET_MODE)
        self.logger.info("JWT secret written to %s", path)
        return path
