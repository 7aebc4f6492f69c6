# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from agentpm.cli.bootstrap import create_initial_state
from agentpm.core.events import WILDCARD, EventBus
from agentpm.core.state import AppState
from agentpm.tasks.task_manager import TaskManager

from .fakes import EventRecorder, FakeClock, InMemoryGateway

TASKS_PATH = Path("memory/tasks.json")


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="agentpm-test",
        log_level="DEBUG",
        project_name="Test Project",
        project_root=tmp_path,
        # Paths (tmp per test run)
        data_dir=tmp_path / ".local",
        artifacts_dir="apm-artifacts",
        artifacts_file="artifacts.json",
        tasks_file_path=tmp_path / "apm-artifacts" / "artifacts.json",
        backup_dir=tmp_path / "backups",
        # Persistence
        keep_backups=3,
        auto_save=True,
        # Operations
        max_completed_operations=100,
        max_concurrent_operations=4,
    )


@pytest.fixture()
def bus() -> EventBus:
    return EventBus()


@pytest.fixture()
def recorder(bus: EventBus) -> EventRecorder:
    rec = EventRecorder()
    bus.subscribe(WILDCARD, rec)
    return rec


@pytest.fixture()
def gateway() -> InMemoryGateway:
    return InMemoryGateway(default_path=TASKS_PATH)


@pytest.fixture()
def manager(gateway: InMemoryGateway, bus: EventBus, recorder: EventRecorder) -> TaskManager:
    """TaskManager with auto-save into the in-memory gateway."""
    return TaskManager(
        gateway=gateway,
        events=bus,
        tasks_file_path=TASKS_PATH,
        project_name="Test Project",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(start=1_000.0)


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """AppState wired by the real composition root on tmp_path."""
    return create_initial_state(settings=settings)
