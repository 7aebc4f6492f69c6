# src/agentpm/tasks/task_validator.py

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from ..errors import InvalidStatusTransitionError, ValidationError
from .task_models import Task, TaskPriority, TaskStatus

# Opt-in stricter matrix: current status -> statuses it may move to.
STRICT_STATUS_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.PENDING: frozenset(
        {TaskStatus.IN_PROGRESS, TaskStatus.DEFERRED, TaskStatus.CANCELLED}
    ),
    TaskStatus.IN_PROGRESS: frozenset(
        {TaskStatus.PENDING, TaskStatus.DONE, TaskStatus.CANCELLED}
    ),
    TaskStatus.DONE: frozenset({TaskStatus.IN_PROGRESS}),
    TaskStatus.DEFERRED: frozenset({TaskStatus.PENDING, TaskStatus.CANCELLED}),
    TaskStatus.CANCELLED: frozenset({TaskStatus.PENDING}),
}


def _require_text(raw: Mapping[str, Any], key: str, task_id: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"Invalid task data: {key} is required (task {task_id})",
            details={"field": key, "task_id": task_id},
        )
    return value


def _optional_text(raw: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        if not isinstance(value, str):
            raise ValidationError(f"Invalid task data: {key} must be a string")
        return value or None
    return None


def _parse_status(raw: Any) -> TaskStatus:
    if raw is None or raw == "":
        return TaskStatus.PENDING
    try:
        return TaskStatus(raw)
    except ValueError:
        raise ValidationError(f"Invalid status value: {raw}", details={"field": "status"}) from None


def _parse_priority(raw: Any) -> TaskPriority:
    if raw is None or raw == "":
        return TaskPriority.MEDIUM
    try:
        return TaskPriority(raw)
    except ValueError:
        raise ValidationError(
            f"Invalid priority value: {raw}", details={"field": "priority"}
        ) from None


def _normalize_dependencies(raw: Any, task_id: str, *, top_level: bool = True) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (str, bytes)) or not isinstance(raw, Iterable):
        raise ValidationError("Invalid task data: dependencies must be a list of task IDs")

    out: list[str] = []
    seen: set[str] = set()
    for dep in raw:
        dep_id = str(dep).strip()
        if not dep_id or dep_id in seen:
            continue
        # A subtask id is its position, so "2" under a subtask may name top-level task 2.
        if top_level and dep_id == task_id:
            raise ValidationError(
                f"Task {task_id} cannot depend on itself",
                details={"field": "dependencies", "task_id": task_id},
            )
        seen.add(dep_id)
        out.append(dep_id)
    return out


class TaskValidator:
    """
    Structural validation and status-transition rules.

    transitions=None means every status change is allowed. Pass a matrix such as
    STRICT_STATUS_TRANSITIONS to enforce a workflow without touching callers.
    """

    def __init__(self, transitions: Mapping[TaskStatus, Iterable[TaskStatus]] | None = None) -> None:
        self._transitions = (
            {TaskStatus(k): frozenset(v) for k, v in transitions.items()}
            if transitions is not None
            else None
        )

    def validate(self, task: Task | Mapping[str, Any], *, top_level: bool = True) -> Task:
        raw = task.to_dict() if isinstance(task, Task) else task
        if not isinstance(raw, Mapping):
            raise ValidationError("Invalid task data: expected an object")

        task_id = raw.get("id")
        if task_id is None or str(task_id).strip() == "":
            raise ValidationError("Invalid task data: id is required", details={"field": "id"})
        task_id = str(task_id).strip()

        subtasks_raw = raw.get("subtasks")
        subtasks: list[Task] | None = None
        if subtasks_raw:
            if not isinstance(subtasks_raw, list):
                raise ValidationError("Invalid task data: subtasks must be a list")
            subtasks = [self.validate(s, top_level=False) for s in subtasks_raw]

        metadata = raw.get("metadata")
        if metadata is not None and not isinstance(metadata, Mapping):
            raise ValidationError("Invalid task data: metadata must be an object")

        return Task(
            id=task_id,
            title=_require_text(raw, "title", task_id),
            description=_require_text(raw, "description", task_id),
            status=_parse_status(raw.get("status")),
            priority=_parse_priority(raw.get("priority")),
            dependencies=_normalize_dependencies(raw.get("dependencies"), task_id, top_level=top_level),
            details=_optional_text(raw, "details"),
            test_strategy=_optional_text(raw, "testStrategy", "test_strategy"),
            subtasks=subtasks,
            metadata=dict(metadata) if metadata else None,
        )

    def validate_status_transition(self, current: TaskStatus | str, new: TaskStatus | str) -> None:
        new_status = _parse_status(new)
        current_status = TaskStatus(current)

        if current_status == new_status:
            return
        if self._transitions is None:
            return

        allowed = self._transitions.get(current_status, frozenset())
        if new_status not in allowed:
            raise InvalidStatusTransitionError(
                f"Invalid status transition: Cannot go from {current_status} to {new_status}",
                details={"from": current_status.value, "to": new_status.value},
            )

    @staticmethod
    def is_valid_task_id(task_id: str) -> bool:
        """Canonical non-negative integer strings only ("7", not "07" or "7a")."""
        if not task_id or not isinstance(task_id, str) or not (task_id.isascii() and task_id.isdigit()):
            return False
        return str(int(task_id)) == task_id
