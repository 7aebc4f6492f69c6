# src/agentpm/tasks/task_repository.py

from __future__ import annotations

from ..errors import AlreadyExistsError, NotFoundError
from .task_models import Task


class TaskRepository:
    """
    In-memory keyed storage for top-level tasks.

    Pure storage: no validation, no dependency logic, no I/O. Iteration order is
    insertion order, which keeps listings stable across save/load cycles.
    """

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def get(self, task_id: str) -> Task | None:
        return self._tasks.get(task_id)

    def get_all(self) -> list[Task]:
        return list(self._tasks.values())

    def add(self, task: Task) -> None:
        if task.id in self._tasks:
            raise AlreadyExistsError(f"Task with ID {task.id} already exists")
        self._tasks[task.id] = task

    def update(self, task_id: str, task: Task) -> None:
        if task_id not in self._tasks:
            raise NotFoundError(f"Task with ID {task_id} not found")
        self._tasks[task_id] = task

    def delete(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None

    def has(self, task_id: str) -> bool:
        return task_id in self._tasks

    def clear(self) -> None:
        self._tasks.clear()
