# src/agentpm/tasks/task_manager.py

from __future__ import annotations

"""
Task orchestrator.

The only writer of the task store. Every mutation runs the same pipeline:

    validate -> apply to the store -> record in the open transaction (if any)
    -> auto-save (if enabled, a file path is known and no transaction is open)
    -> publish the domain event

Collaborators are injected; each has one default implementation in this package.
"""

import functools
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import replace
from pathlib import Path
from typing import Any, TypeVar

from ..core.events import EventBus, TaskEvent
from ..core.ports import (
    DependencyManager,
    EventPublisher,
    MigrationService,
    QueryService,
    TaskFileGateway,
    TaskRepo,
    TaskValidatorPort,
    TransactionLogPort,
)
from ..errors import (
    AlreadyExistsError,
    CircularDependencyError,
    NotFoundError,
    OperationNotPermittedError,
    ValidationError,
)
from .task_dependencies import TaskDependencyManager
from .task_files import JsonTaskFileGateway
from .task_migration import TaskMigrationService
from .task_models import (
    DEFAULT_PROJECT_NAME,
    SCHEMA_VERSION,
    ChangeKind,
    Task,
    TasksData,
    TasksMetadata,
    TaskStatus,
    TransactionChange,
    utc_now_iso,
)
from .task_queries import TaskFilter, TaskQuery, TaskQueryResult, TaskQueryService
from .task_repository import TaskRepository
from .task_validator import TaskValidator
from .transaction_log import TransactionLog

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def _reports_errors(fn: F) -> F:
    """
    Publish one `error` event for a failure escaping a public operation.

    Public operations call each other (batch -> update -> save); only the
    outermost call publishes.
    """

    @functools.wraps(fn)
    def wrapper(self: TaskManager, *args: Any, **kwargs: Any) -> Any:
        self._call_depth += 1
        try:
            return fn(self, *args, **kwargs)
        except Exception as e:
            if self._call_depth == 1:
                self._publish_error(fn.__name__, e)
            raise
        finally:
            self._call_depth -= 1

    return wrapper  # type: ignore[return-value]


def _normalize_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(changes)
    out.pop("id", None)
    if "test_strategy" in out:
        out["testStrategy"] = out.pop("test_strategy")
    for key in ("status", "priority"):
        if out.get(key) is not None:
            out[key] = str(out[key])
    subtasks = out.get("subtasks")
    if subtasks:
        out["subtasks"] = [s.to_dict() if isinstance(s, Task) else s for s in subtasks]
    return out


class TaskManager:
    def __init__(
            self,
            *,
            repository: TaskRepo | None = None,
            validator: TaskValidatorPort | None = None,
            dependencies: DependencyManager | None = None,
            queries: QueryService | None = None,
            migration: MigrationService | None = None,
            transactions: TransactionLogPort | None = None,
            gateway: TaskFileGateway | None = None,
            events: EventPublisher | None = None,
            auto_save: bool = True,
            tasks_file_path: str | Path | None = None,
            project_name: str = DEFAULT_PROJECT_NAME,
            keep_backups: int = 5,
    ) -> None:
        self._repo = repository if repository is not None else TaskRepository()
        self._validator = validator or TaskValidator()
        self._deps = dependencies or TaskDependencyManager(self._repo)
        self._queries = queries or TaskQueryService(self._repo)
        self._migration = migration or TaskMigrationService(project_name)
        self._tx = transactions or TransactionLog()
        self._gateway = gateway or JsonTaskFileGateway(Path.cwd())
        self._events = events or EventBus()

        self._auto_save = bool(auto_save)
        self._file_path = Path(tasks_file_path) if tasks_file_path else None
        self._keep_backups = int(keep_backups)
        self._metadata = TasksMetadata(project_name=project_name)

        self._snapshot: tuple[list[Task], TasksMetadata] | None = None
        self._call_depth = 0

    # ---- properties ----

    @property
    def events(self) -> EventPublisher:
        return self._events

    @property
    def tasks_file_path(self) -> Path | None:
        return self._file_path

    @property
    def metadata(self) -> TasksMetadata:
        return self._metadata

    @property
    def auto_save(self) -> bool:
        return self._auto_save

    def in_transaction(self) -> bool:
        return self._tx.is_open()

    def to_data(self) -> TasksData:
        return TasksData(tasks=self._repo.get_all(), metadata=self._metadata)

    # ---- internals ----

    def _publish(self, topic: TaskEvent, **payload: Any) -> None:
        self._events.publish(topic, payload)

    def _publish_error(self, operation: str, error: Exception) -> None:
        logger.debug("Operation %s failed: %s", operation, error)
        self._publish(TaskEvent.ERROR, operation=operation, error=error)

    def _require(self, task_id: str) -> Task:
        task = self._repo.get(str(task_id))
        if task is None:
            raise NotFoundError(f"Task with ID {task_id} not found")
        return task

    def _maybe_auto_save(self) -> None:
        # Deferred while a transaction is open; commit saves once for the batch.
        if self._auto_save and self._file_path is not None and not self._tx.is_open():
            self.save()

    def _reject_cycles(self, task_id: str, dependency_ids: Iterable[str]) -> None:
        # Dangling ids are checked too: they may close a cycle once created.
        for dep_id in dependency_ids:
            if self._deps.has_circular_dependency(task_id, dep_id):
                raise CircularDependencyError(
                    "Adding this dependency would create a circular dependency",
                    details={"task_id": task_id, "dependency_id": dep_id},
                )

    def _next_task_id(self) -> str:
        numeric = [int(t.id) for t in self._repo.get_all() if t.id.isascii() and t.id.isdigit()]
        return str(max(numeric, default=0) + 1)

    # ---- lifecycle ----

    @_reports_errors
    def initialize(self) -> None:
        if self._file_path is None:
            self._file_path = Path(self._gateway.find_default_path())

        if self._gateway.exists(self._file_path):
            self.load(self._file_path)
        else:
            logger.info("No tasks file at %s yet, starting empty", self._file_path)

    # ---- CRUD ----

    @_reports_errors
    def create_task(self, data: Mapping[str, Any] | Task) -> Task:
        raw = data.to_dict() if isinstance(data, Task) else _normalize_changes(data)

        raw_id = data.id if isinstance(data, Task) else data.get("id")
        task_id = str(raw_id).strip() if raw_id is not None else ""
        if not task_id:
            task_id = self._next_task_id()
        if self._repo.has(task_id):
            raise AlreadyExistsError(f"Task with ID {task_id} already exists")
        raw["id"] = task_id

        task = self._validator.validate(raw)
        self._reject_cycles(task_id, task.dependencies)
        self._repo.add(task)
        self._tx.record_change(ChangeKind.CREATE, task)
        self._maybe_auto_save()

        logger.info("Task created id=%s title=%r", task.id, task.title)
        self._publish(TaskEvent.TASK_CREATED, task=task)
        return task

    def get_task(self, task_id: str) -> Task | None:
        return self._repo.get(str(task_id))

    def get_all_tasks(self) -> list[Task]:
        return self._repo.get_all()

    @_reports_errors
    def update_task(self, task_id: str, changes: Mapping[str, Any]) -> Task:
        task_id = str(task_id)
        existing = self._require(task_id)
        changes = _normalize_changes(changes)

        new_status = changes.get("status")
        status_changed = new_status is not None and new_status != existing.status.value
        if status_changed:
            self._validator.validate_status_transition(existing.status, new_status)

        merged = existing.to_dict()
        merged.update(changes)
        merged["id"] = task_id
        updated = self._validator.validate(merged)
        self._reject_cycles(
            task_id, [d for d in updated.dependencies if d not in existing.dependencies]
        )

        self._repo.update(task_id, updated)
        self._tx.record_change(ChangeKind.UPDATE, updated, {"previous": existing})
        self._maybe_auto_save()

        self._publish(TaskEvent.TASK_UPDATED, task=updated)
        if status_changed:
            logger.info("Task %s status %s -> %s", task_id, existing.status, updated.status)
            self._publish(
                TaskEvent.TASK_STATUS_CHANGED,
                task=updated,
                old_status=existing.status,
                new_status=updated.status,
            )
        return updated

    @_reports_errors
    def update_task_status(self, task_id: str, status: TaskStatus | str) -> Task:
        existing = self._require(task_id)
        if existing.status.value == str(status):
            return existing
        self._validator.validate_status_transition(existing.status, status)
        return self.update_task(task_id, {"status": status})

    @_reports_errors
    def delete_task(self, task_id: str, force: bool = False) -> bool:
        task_id = str(task_id)
        existing = self._require(task_id)

        dependents = self._deps.find_dependent_tasks(task_id)
        if dependents and not force:
            raise OperationNotPermittedError(
                f"Cannot delete task {task_id} because it is a dependency for other tasks",
                details={"dependents": [t.id for t in dependents]},
            )

        for updated in self._deps.remove_from_all_dependencies(task_id):
            self._tx.record_change(ChangeKind.UPDATE, updated, {"dependency_removed": task_id})

        deleted = self._repo.delete(task_id)
        self._tx.record_change(ChangeKind.DELETE, existing)
        if deleted:
            self._maybe_auto_save()

        logger.info("Task deleted id=%s force=%s", task_id, force)
        self._publish(TaskEvent.TASK_DELETED, task=existing)
        return deleted

    # ---- dependencies ----

    @_reports_errors
    def add_dependency(self, task_id: str, dependency_id: str) -> Task:
        before = self._require(task_id)
        updated = self._deps.add_dependency(str(task_id), str(dependency_id))
        if updated is before:
            return updated

        self._tx.record_change(ChangeKind.ADD_DEPENDENCY, updated, {"dependency_id": str(dependency_id)})
        self._maybe_auto_save()
        self._publish(TaskEvent.DEPENDENCY_ADDED, task=updated, dependency_id=str(dependency_id))
        return updated

    @_reports_errors
    def remove_dependency(self, task_id: str, dependency_id: str) -> Task:
        before = self._require(task_id)
        updated = self._deps.remove_dependency(str(task_id), str(dependency_id))
        if updated is before:
            return updated

        self._tx.record_change(
            ChangeKind.REMOVE_DEPENDENCY, updated, {"dependency_id": str(dependency_id)}
        )
        self._maybe_auto_save()
        self._publish(TaskEvent.DEPENDENCY_REMOVED, task=updated, dependency_id=str(dependency_id))
        return updated

    def has_circular_dependency(self, task_id: str, dependency_id: str) -> bool:
        return self._deps.has_circular_dependency(str(task_id), str(dependency_id))

    def find_dependent_tasks(self, task_id: str) -> list[Task]:
        return self._deps.find_dependent_tasks(str(task_id))

    # ---- queries ----

    def filter_tasks(self, criteria: TaskFilter | None = None) -> list[Task]:
        return self._queries.filter_tasks(criteria)

    @_reports_errors
    def query_tasks(self, options: TaskQuery | None = None) -> TaskQueryResult:
        return self._queries.query_tasks(options)

    @_reports_errors
    def get_tasks_by_status(self, status: TaskStatus | str | None = None) -> list[Task]:
        return self._queries.get_tasks_by_status(status)

    def get_pending_tasks(self) -> list[Task]:
        return self._queries.get_tasks_by_status(TaskStatus.PENDING)

    def get_completed_tasks(self) -> list[Task]:
        return self._queries.get_tasks_by_status(TaskStatus.DONE)

    def get_in_progress_tasks(self) -> list[Task]:
        return self._queries.get_tasks_by_status(TaskStatus.IN_PROGRESS)

    def get_high_priority_tasks(self) -> list[Task]:
        return self._queries.get_high_priority_tasks()

    def get_independent_tasks(self) -> list[Task]:
        return self._queries.get_independent_tasks()

    def get_ready_tasks(self) -> list[Task]:
        return self._queries.get_ready_tasks()

    @_reports_errors
    def find_next_task(self, *, priority: str | None = None, contains_text: str | None = None) -> Task | None:
        return self._queries.find_next_task(priority=priority, contains_text=contains_text)

    def get_task_by_id(self, task_id: str) -> Task | None:
        return self._queries.get_task_by_id(str(task_id))

    @_reports_errors
    def get_filtered_tasks(self, *, status: TaskStatus | str | None = None, with_subtasks: bool = True) -> list[Task]:
        return self._queries.get_filtered_tasks(
            self._repo.get_all(), status=status, with_subtasks=with_subtasks
        )

    # ---- subtasks ----

    @_reports_errors
    def add_subtask(
            self,
            parent_id: str,
            data: Mapping[str, Any] | None = None,
            from_task_id: str | None = None,
    ) -> Task:
        """
        Append a subtask to parent_id, either from data or by converting the
        existing top-level task from_task_id. Returns the subtask as seen by
        callers (dotted id).
        """
        parent_id = str(parent_id)
        parent = self._require(parent_id)

        source: Task | None = None
        if from_task_id is not None:
            from_task_id = str(from_task_id)
            if from_task_id == parent_id:
                raise OperationNotPermittedError("A task cannot become its own subtask")
            source = self._require(from_task_id)
            dependents = self._deps.find_dependent_tasks(from_task_id)
            if dependents:
                raise OperationNotPermittedError(
                    f"Cannot convert task {from_task_id} to a subtask: other tasks depend on it",
                    details={"dependents": [t.id for t in dependents]},
                )
            raw = source.to_dict()
            raw["dependencies"] = [d for d in source.dependencies if d != parent_id]
        elif data is not None:
            raw = _normalize_changes(data)
        else:
            raise ValidationError("Either subtask data or from_task_id is required")

        if not raw.get("priority"):
            raw["priority"] = parent.priority.value

        index = len(parent.subtasks or []) + 1
        raw["id"] = str(index)
        subtask = self._validator.validate(raw, top_level=False)

        if source is not None:
            self._repo.delete(source.id)
            self._tx.record_change(ChangeKind.DELETE, source)

        updated_parent = replace(parent, subtasks=[*(parent.subtasks or []), subtask])
        self._repo.update(parent_id, updated_parent)
        self._tx.record_change(ChangeKind.UPDATE, updated_parent, {"previous": parent})
        self._maybe_auto_save()

        if source is not None:
            self._publish(TaskEvent.TASK_DELETED, task=source)
        self._publish(TaskEvent.TASK_UPDATED, task=updated_parent)

        view = subtask.copy()
        view.id = f"{parent_id}.{index}"
        return view

    @_reports_errors
    def remove_subtask(
            self,
            parent_id: str,
            index: int,
            convert_to_task: bool = False,
    ) -> tuple[Task, Task | None]:
        """
        Remove the subtask at 1-based index and renumber the rest.

        Returns (updated parent, new top-level task or None).
        """
        parent_id = str(parent_id)
        parent = self._require(parent_id)
        subtasks = list(parent.subtasks or [])

        index = int(index)
        if index < 1 or index > len(subtasks):
            raise NotFoundError(f"Subtask {parent_id}.{index} not found")

        removed = subtasks.pop(index - 1)
        renumbered = [replace(s, id=str(i)) for i, s in enumerate(subtasks, start=1)]
        updated_parent = replace(parent, subtasks=renumbered or None)

        created: Task | None = None
        if convert_to_task:
            new_id = self._next_task_id()
            raw = removed.to_dict()
            raw["id"] = new_id
            raw["dependencies"] = [d for d in removed.dependencies if d != new_id and self._repo.has(d)]
            created = self._validator.validate(raw)

        self._repo.update(parent_id, updated_parent)
        self._tx.record_change(ChangeKind.UPDATE, updated_parent, {"previous": parent})
        if created is not None:
            self._repo.add(created)
            self._tx.record_change(ChangeKind.CREATE, created)
        self._maybe_auto_save()

        self._publish(TaskEvent.TASK_UPDATED, task=updated_parent)
        if created is not None:
            logger.info("Subtask %s.%d converted to task %s", parent_id, index, created.id)
            self._publish(TaskEvent.TASK_CREATED, task=created)
        return updated_parent, created

    @_reports_errors
    def clear_subtasks(self, parent_id: str) -> Task:
        parent_id = str(parent_id)
        parent = self._require(parent_id)
        if not parent.subtasks:
            return parent

        updated_parent = replace(parent, subtasks=None)
        self._repo.update(parent_id, updated_parent)
        self._tx.record_change(ChangeKind.UPDATE, updated_parent, {"previous": parent})
        self._maybe_auto_save()

        self._publish(TaskEvent.TASK_UPDATED, task=updated_parent)
        return updated_parent

    # ---- persistence ----

    @_reports_errors
    def save(self, path: str | Path | None = None, keep_backups: int | None = None) -> Path:
        target = Path(path) if path is not None else self._file_path
        if target is None:
            raise ValidationError("No tasks file path configured")

        self._metadata.updated = utc_now_iso()
        keep = self._keep_backups if keep_backups is None else int(keep_backups)
        self._gateway.save(target, self.to_data().to_dict(), keep)

        if self._file_path is None:
            self._file_path = target

        logger.debug("Saved %d task(s) to %s", len(self._repo.get_all()), target)
        self._publish(TaskEvent.TASKS_SAVED, path=target, count=len(self._repo.get_all()))
        return target

    @_reports_errors
    def load(self, path: str | Path | None = None) -> TasksData:
        source = Path(path) if path is not None else self._file_path
        if source is None:
            raise ValidationError("No tasks file path configured")

        raw = self._gateway.load(source)
        if self._migration.needs_migration(raw):
            logger.info("Tasks file %s needs migration", source)
            data = self._migration.migrate(raw)
            tasks = [self._validator.validate(t) for t in data.tasks]
            metadata = data.metadata
        else:
            tasks = [self._validator.validate(t) for t in raw["tasks"]]
            meta = raw["metadata"]
            metadata = TasksMetadata(
                version=SCHEMA_VERSION,
                created=meta["created"],
                updated=meta["updated"],
                project_name=meta["projectName"],
            )

        seen: set[str] = set()
        for task in tasks:
            if task.id in seen:
                raise AlreadyExistsError(
                    f"Task with ID {task.id} already exists", details={"path": str(source)}
                )
            seen.add(task.id)

        self._repo.clear()
        for task in tasks:
            self._repo.add(task)
        self._metadata = metadata
        if self._file_path is None:
            self._file_path = source

        logger.info("Loaded %d task(s) from %s", len(tasks), source)
        self._publish(TaskEvent.TASKS_LOADED, path=source, count=len(tasks))
        return TasksData(tasks=list(tasks), metadata=metadata)

    # ---- transactions ----

    @_reports_errors
    def begin_transaction(self) -> None:
        self._tx.begin()
        self._snapshot = (
            [t.copy() for t in self._repo.get_all()],
            replace(self._metadata),
        )
        self._publish(TaskEvent.TRANSACTION_STARTED)

    @_reports_errors
    def commit_transaction(self) -> list[TransactionChange]:
        changes = self._tx.commit()
        self._snapshot = None
        if changes:
            self._maybe_auto_save()

        logger.debug("Transaction committed with %d change(s)", len(changes))
        self._publish(TaskEvent.TRANSACTION_COMMITTED, changes=changes)
        return changes

    @_reports_errors
    def rollback_transaction(self) -> None:
        self._tx.rollback()
        snapshot, self._snapshot = self._snapshot, None
        if snapshot is not None:
            tasks, metadata = snapshot
            self._repo.clear()
            for task in tasks:
                self._repo.add(task)
            self._metadata = metadata

        logger.info("Transaction rolled back")
        self._publish(TaskEvent.TRANSACTION_ROLLED_BACK)

    @_reports_errors
    def batch_update_tasks(self, updates: Iterable[Mapping[str, Any]]) -> list[Task]:
        self.begin_transaction()
        try:
            results: list[Task] = []
            for item in updates:
                if item.get("id") is None:
                    raise ValidationError("Every batch update needs an id")
                results.append(self.update_task(str(item["id"]), item))
        except Exception:
            self.rollback_transaction()
            raise
        self.commit_transaction()
        return results

    @_reports_errors
    def batch_delete_tasks(self, task_ids: Iterable[str], force: bool = False) -> bool:
        self.begin_transaction()
        try:
            results = [self.delete_task(str(task_id), force=force) for task_id in task_ids]
        except Exception:
            self.rollback_transaction()
            raise
        self.commit_transaction()
        return all(results)
