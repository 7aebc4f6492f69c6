# src/agentpm/tasks/task_dependencies.py

from __future__ import annotations

import logging
from dataclasses import replace

from ..core.ports import TaskRepo
from ..errors import CircularDependencyError, NotFoundError
from .task_models import Task

logger = logging.getLogger(__name__)


class TaskDependencyManager:
    """
    Maintains the "depends-on" edge set between top-level tasks.

    Writes are strict: both ends must exist and no edge may close a cycle.
    Readers (see task_queries) are lenient about dangling ids.
    """

    def __init__(self, repository: TaskRepo) -> None:
        self._repo = repository

    def add_dependency(self, task_id: str, dependency_id: str) -> Task:
        task = self._repo.get(task_id)
        if task is None:
            raise NotFoundError(f"Task with ID {task_id} not found")

        if self._repo.get(dependency_id) is None:
            raise NotFoundError(f"Dependency with ID {dependency_id} not found")

        if dependency_id in task.dependencies:
            return task

        if self.has_circular_dependency(task_id, dependency_id):
            raise CircularDependencyError(
                "Adding this dependency would create a circular dependency",
                details={"task_id": task_id, "dependency_id": dependency_id},
            )

        updated = replace(task, dependencies=[*task.dependencies, dependency_id])
        self._repo.update(task_id, updated)
        logger.debug("Dependency added %s -> %s", task_id, dependency_id)
        return updated

    def remove_dependency(self, task_id: str, dependency_id: str) -> Task:
        task = self._repo.get(task_id)
        if task is None:
            raise NotFoundError(f"Task with ID {task_id} not found")

        if dependency_id not in task.dependencies:
            return task

        updated = replace(task, dependencies=[d for d in task.dependencies if d != dependency_id])
        self._repo.update(task_id, updated)
        logger.debug("Dependency removed %s -> %s", task_id, dependency_id)
        return updated

    def has_circular_dependency(self, task_id: str, dependency_id: str) -> bool:
        """
        True if an edge task_id -> dependency_id would close a cycle, i.e. task_id is
        already reachable from dependency_id through existing edges.
        """
        if task_id == dependency_id:
            return True

        stack = [dependency_id]
        visited: set[str] = set()
        while stack:
            current_id = stack.pop()
            if current_id in visited:
                continue
            visited.add(current_id)

            current = self._repo.get(current_id)
            if current is None:
                continue
            for dep_id in current.dependencies:
                if dep_id == task_id:
                    return True
                if dep_id not in visited:
                    stack.append(dep_id)
        return False

    def find_dependent_tasks(self, task_id: str) -> list[Task]:
        return [t for t in self._repo.get_all() if task_id in t.dependencies]

    def remove_from_all_dependencies(self, task_id: str) -> list[Task]:
        updated_tasks: list[Task] = []
        for task in self.find_dependent_tasks(task_id):
            updated = replace(task, dependencies=[d for d in task.dependencies if d != task_id])
            self._repo.update(task.id, updated)
            updated_tasks.append(updated)
        if updated_tasks:
            logger.debug("Stripped %s from %d dependency lists", task_id, len(updated_tasks))
        return updated_tasks
