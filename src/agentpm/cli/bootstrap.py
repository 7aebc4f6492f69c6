# src/agentpm/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the default implementations into AppState (event bus, task manager,
  JSON file gateway, operation tracker).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.events import EventBus, TaskEvent
from ..core.state import AppState
from ..operations.operation_tracker import OperationTracker
from ..tasks.task_files import JsonTaskFileGateway
from ..tasks.task_manager import TaskManager

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_file_path.parent.mkdir(parents=True, exist_ok=True)


def _log_error_event(event) -> None:
    error = event.payload.get("error")
    logger.debug("Task operation %s failed: %s", event.payload.get("operation"), error)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    events = EventBus()
    events.subscribe(TaskEvent.ERROR, _log_error_event, name="bootstrap.error_log")

    tasks = TaskManager(
        gateway=JsonTaskFileGateway.from_settings(settings),
        events=events,
        auto_save=settings.auto_save,
        tasks_file_path=settings.tasks_file_path,
        project_name=settings.project_name,
        keep_backups=settings.keep_backups,
    )

    operations = OperationTracker(
        max_completed=settings.max_completed_operations,
        max_concurrent=settings.max_concurrent_operations,
        events=events,
    )

    return AppState(settings=settings, events=events, tasks=tasks, operations=operations)
