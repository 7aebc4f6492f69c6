# src/agentpm/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The task manager depends on Protocols instead of concrete implementations.
Each port has exactly one default implementation under agentpm.tasks; tests
swap in fakes (see tests/fakes.py).
"""

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol


class TaskRepo(Protocol):
    """Keyed task storage (agentpm.tasks.task_repository.TaskRepository)."""

    def get(self, task_id: str) -> Any | None: ...
    def get_all(self) -> list[Any]: ...
    def add(self, task: Any) -> None: ...
    def update(self, task_id: str, task: Any) -> None: ...
    def delete(self, task_id: str) -> bool: ...
    def has(self, task_id: str) -> bool: ...
    def clear(self) -> None: ...


class TaskValidatorPort(Protocol):
    def validate(self, task: Any, *, top_level: bool = True) -> Any: ...
    def validate_status_transition(self, current: Any, new: Any) -> None: ...


class DependencyManager(Protocol):
    def add_dependency(self, task_id: str, dependency_id: str) -> Any: ...
    def remove_dependency(self, task_id: str, dependency_id: str) -> Any: ...
    def has_circular_dependency(self, task_id: str, dependency_id: str) -> bool: ...
    def find_dependent_tasks(self, task_id: str) -> list[Any]: ...
    def remove_from_all_dependencies(self, task_id: str) -> list[Any]: ...


class QueryService(Protocol):
    def filter_tasks(self, criteria: Any) -> list[Any]: ...
    def query_tasks(self, options: Any) -> Any: ...
    def get_tasks_by_status(self, status: Any = None) -> list[Any]: ...
    def get_ready_tasks(self) -> list[Any]: ...
    def find_next_task(
            self,
            *,
            priority: Any = None,
            contains_text: str | None = None,
    ) -> Any | None: ...
    def get_task_by_id(self, task_id: str, tasks: list[Any] | None = None) -> Any | None: ...
    def get_filtered_tasks(
            self,
            tasks: list[Any],
            *,
            status: Any = None,
            with_subtasks: bool = True,
    ) -> list[Any]: ...


class MigrationService(Protocol):
    def needs_migration(self, payload: Any) -> bool: ...
    def migrate(self, payload: Any) -> Any: ...


class TransactionLogPort(Protocol):
    def begin(self) -> None: ...
    def record_change(self, kind: Any, task: Any, metadata: dict[str, Any] | None = None) -> None: ...
    def commit(self) -> list[Any]: ...
    def rollback(self) -> None: ...
    def is_open(self) -> bool: ...


class TaskFileGateway(Protocol):
    """
    Durable save/load of the full collection.

    Saves are atomic from the caller's point of view; keep_backups rotates older
    snapshots without the caller managing file names.
    """

    def save(self, path: Path, data: Mapping[str, Any], keep_backups: int = 5) -> None: ...
    def load(self, path: Path) -> Any: ...
    def exists(self, path: Path) -> bool: ...
    def find_default_path(self) -> Path: ...


class EventPublisher(Protocol):
    def publish(self, topic: str, payload: dict[str, Any] | None = None) -> None: ...

