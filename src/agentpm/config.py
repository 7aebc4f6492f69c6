# src/agentpm/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Everything has a default; an empty environment gives a working setup in the
  current directory.
- Tests build their own settings object instead of touching the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "APM"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Project ----
    project_name: str
    project_root: Path

    # ---- Local data paths ----
    data_dir: Path
    artifacts_dir: str
    artifacts_file: str
    backup_dir: Path

    # ---- Persistence ----
    keep_backups: int
    auto_save: bool

    # ---- Long-running operations ----
    max_completed_operations: int
    max_concurrent_operations: int

    @property
    def tasks_file_path(self) -> Path:
        return self.project_root / self.artifacts_dir / self.artifacts_file

    @staticmethod
    def from_env(*, load_env_file: bool = True) -> Settings:
        if load_env_file:
            load_dotenv(override=False)

        app_name = _env(_k("APP_NAME"), "agentpm") or "agentpm"
        log_level = _env(_k("LOG_LEVEL"), "INFO").upper()

        project_name = _env(_k("PROJECT_NAME"), "AgentPM Project") or "AgentPM Project"
        project_root = _env_path(_k("PROJECT_ROOT"), Path.cwd())

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/agentpm"))
        artifacts_dir = _env(_k("ARTIFACTS_DIR"), "apm-artifacts") or "apm-artifacts"
        artifacts_file = _env(_k("ARTIFACTS_FILE"), "artifacts.json") or "artifacts.json"
        backup_dir = _env_path(_k("BACKUP_DIR"), project_root / "backups")

        keep_backups = max(0, _env_int(_k("KEEP_BACKUPS"), 5))
        auto_save = _env_bool(_k("AUTO_SAVE"), True)

        max_completed_operations = max(1, _env_int(_k("MAX_COMPLETED_OPERATIONS"), 100))
        max_concurrent_operations = max(1, _env_int(_k("MAX_CONCURRENT_OPERATIONS"), 4))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            project_name=project_name,
            project_root=project_root,
            data_dir=data_dir,
            artifacts_dir=artifacts_dir,
            artifacts_file=artifacts_file,
            backup_dir=backup_dir,
            keep_backups=keep_backups,
            auto_save=auto_save,
            max_completed_operations=max_completed_operations,
            max_concurrent_operations=max_concurrent_operations,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Process-wide settings, read from the environment on first use."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
