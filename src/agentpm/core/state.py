# src/agentpm/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..operations.operation_tracker import OperationTracker
from ..tasks.task_manager import TaskManager
from .events import EventBus


@dataclass(slots=True)
class AppState:
    """
    Runtime state shared by the CLI and connectors.

    settings is typed as Any because tests pass a SimpleNamespace instead of
    the frozen Settings dataclass.
    """

    settings: Any
    events: EventBus
    tasks: TaskManager
    operations: OperationTracker
