# src/agentpm/tasks/task_files.py

from __future__ import annotations

"""
JSON file persistence for the task collection.

- save: back up the current file, rotate old backups, write atomically (tmp + os.replace)
- load: parse JSON and hand the raw mapping back (migration/validation is the caller's job)

Backups live in a dedicated directory as "<file name>.<timestamp>.bak". Timestamps
are fixed-width, so lexical order is chronological order.
"""

import json
import logging
import os
import shutil
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from ..errors import BackupError, ErrorCode, FileReadError, FileWriteError

logger = logging.getLogger(__name__)


def _backup_timestamp() -> str:
    return datetime.now(UTC).strftime("%Y-%m-%dT%H-%M-%S-%fZ")


class JsonTaskFileGateway:
    def __init__(
            self,
            project_root: str | Path,
            *,
            default_file: str | Path | None = None,
            backup_dir: str | Path | None = None,
    ) -> None:
        self._root = Path(project_root)
        self._default_file = Path(default_file) if default_file else self._root / "apm-artifacts" / "artifacts.json"
        self._backup_dir = Path(backup_dir) if backup_dir else self._root / "backups"

    @classmethod
    def from_settings(cls, settings: Any) -> JsonTaskFileGateway:
        return cls(
            settings.project_root,
            default_file=settings.tasks_file_path,
            backup_dir=settings.backup_dir,
        )

    @property
    def backup_dir(self) -> Path:
        return self._backup_dir

    def find_default_path(self) -> Path:
        return self._default_file

    def exists(self, path: Path) -> bool:
        return Path(path).is_file()

    # ---- load / save ----

    def load(self, path: Path) -> Any:
        path = Path(path)
        try:
            text = path.read_text("utf-8")
        except FileNotFoundError:
            raise FileReadError(
                f"File not found: {path}",
                code=ErrorCode.FILE_NOT_FOUND,
                details={"path": str(path)},
            ) from None
        except OSError as e:
            raise FileReadError(f"Error reading {path}: {e}", details={"path": str(path)}) from e

        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise FileReadError(
                f"Invalid JSON in {path}: {e}",
                code=ErrorCode.PARSING_ERROR,
                details={"path": str(path), "line": e.lineno},
            ) from e

    def save(self, path: Path, data: Mapping[str, Any], keep_backups: int = 5) -> None:
        path = Path(path)

        if path.is_file():
            self.create_backup(path)
            if keep_backups > 0:
                self.cleanup_backups(path, keep_backups)

        try:
            payload = json.dumps(data, ensure_ascii=False, indent=2)
        except (TypeError, ValueError) as e:
            raise FileWriteError(f"Tasks data is not serializable: {e}", details={"path": str(path)}) from e

        tmp = path.with_name(path.name + ".tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(payload + "\n", "utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise FileWriteError(f"Error writing {path}: {e}", details={"path": str(path)}) from e

        logger.debug("Saved tasks file %s", path)

    # ---- backups ----

    def create_backup(self, path: Path) -> Path:
        path = Path(path)
        if not path.is_file():
            raise BackupError(
                f"Cannot backup non-existent file: {path}",
                code=ErrorCode.FILE_NOT_FOUND,
                details={"path": str(path)},
            )

        target = self._backup_dir / f"{path.name}.{_backup_timestamp()}.bak"
        while target.exists():
            target = self._backup_dir / f"{path.name}.{_backup_timestamp()}.bak"
        try:
            self._backup_dir.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, target)
        except OSError as e:
            raise BackupError(f"Error creating backup of {path}: {e}", details={"path": str(path)}) from e

        logger.debug("Backup created %s", target)
        return target

    def list_backups(self, path: Path) -> list[Path]:
        """Backups of path, newest first."""
        name = Path(path).name
        if not self._backup_dir.is_dir():
            return []
        try:
            found = [
                p for p in self._backup_dir.iterdir()
                if p.is_file() and p.name.startswith(f"{name}.") and p.name.endswith(".bak")
            ]
        except OSError as e:
            raise BackupError(f"Error listing backups for {path}: {e}", details={"path": str(path)}) from e
        return sorted(found, key=lambda p: p.name, reverse=True)

    def cleanup_backups(self, path: Path, keep: int) -> list[Path]:
        """Delete all but the newest `keep` backups. keep <= 0 keeps everything."""
        if keep <= 0:
            return []

        removed: list[Path] = []
        for old in self.list_backups(path)[keep:]:
            try:
                old.unlink()
            except OSError as e:
                raise BackupError(f"Error deleting backup {old}: {e}", details={"path": str(old)}) from e
            removed.append(old)

        if removed:
            logger.debug("Removed %d old backup(s) of %s", len(removed), Path(path).name)
        return removed

    def restore_backup(self, backup_path: Path, target: Path | None = None) -> Path:
        """
        Copy a backup over its original file. The current file (if any) is backed
        up first. Without target, the original name is taken from the backup name.
        """
        backup_path = Path(backup_path)
        if not backup_path.is_file():
            raise BackupError(
                f"Backup not found: {backup_path}",
                code=ErrorCode.FILE_NOT_FOUND,
                details={"path": str(backup_path)},
            )

        if target is None:
            # "<name>.<timestamp>.bak" -> "<name>"
            original_name = backup_path.name.rsplit(".", 2)[0]
            target = self._default_file.parent / original_name
        target = Path(target)

        if target.is_file():
            self.create_backup(target)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(backup_path, target)
        except OSError as e:
            raise BackupError(f"Error restoring {backup_path}: {e}", details={"path": str(target)}) from e

        logger.info("Restored %s from %s", target, backup_path.name)
        return target
