# tests/test_config.py

from __future__ import annotations

from pathlib import Path

import pytest

from agentpm.config import Settings

_VARS = (
    "APM_APP_NAME",
    "APM_LOG_LEVEL",
    "APM_PROJECT_NAME",
    "APM_PROJECT_ROOT",
    "APM_DATA_DIR",
    "APM_ARTIFACTS_DIR",
    "APM_ARTIFACTS_FILE",
    "APM_BACKUP_DIR",
    "APM_KEEP_BACKUPS",
    "APM_AUTO_SAVE",
    "APM_MAX_COMPLETED_OPERATIONS",
    "APM_MAX_CONCURRENT_OPERATIONS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults_with_empty_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    s = Settings.from_env(load_env_file=False)

    assert s.app_name == "agentpm"
    assert s.log_level == "INFO"
    assert s.project_name == "AgentPM Project"
    assert s.project_root == tmp_path
    assert s.tasks_file_path == tmp_path / "apm-artifacts" / "artifacts.json"
    assert s.backup_dir == tmp_path / "backups"
    assert s.keep_backups == 5
    assert s.auto_save is True
    assert s.max_completed_operations == 100
    assert s.max_concurrent_operations == 4


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("APM_LOG_LEVEL", "debug")
    monkeypatch.setenv("APM_PROJECT_NAME", "Rocket")
    monkeypatch.setenv("APM_PROJECT_ROOT", str(tmp_path))
    monkeypatch.setenv("APM_ARTIFACTS_DIR", ".tasks")
    monkeypatch.setenv("APM_ARTIFACTS_FILE", "tasks.json")
    monkeypatch.setenv("APM_KEEP_BACKUPS", "2")
    monkeypatch.setenv("APM_MAX_CONCURRENT_OPERATIONS", "8")

    s = Settings.from_env(load_env_file=False)

    assert s.log_level == "DEBUG"
    assert s.project_name == "Rocket"
    assert s.tasks_file_path == tmp_path / ".tasks" / "tasks.json"
    assert s.backup_dir == tmp_path / "backups"
    assert s.keep_backups == 2
    assert s.max_concurrent_operations == 8


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("1", True), ("yes", True), ("ON", True), ("0", False), ("off", False), ("nope", False), ("", True)],
)
def test_bool_parsing(monkeypatch: pytest.MonkeyPatch, raw: str, expected: bool) -> None:
    monkeypatch.setenv("APM_AUTO_SAVE", raw)
    assert Settings.from_env(load_env_file=False).auto_save is expected


def test_bad_and_out_of_range_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APM_KEEP_BACKUPS", "many")
    monkeypatch.setenv("APM_MAX_COMPLETED_OPERATIONS", "0")
    monkeypatch.setenv("APM_MAX_CONCURRENT_OPERATIONS", "-3")

    s = Settings.from_env(load_env_file=False)

    assert s.keep_backups == 5
    assert s.max_completed_operations == 1
    assert s.max_concurrent_operations == 1


def test_negative_keep_backups_is_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("APM_KEEP_BACKUPS", "-1")
    assert Settings.from_env(load_env_file=False).keep_backups == 0
