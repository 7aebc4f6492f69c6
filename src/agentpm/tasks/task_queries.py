# src/agentpm/tasks/task_queries.py

from __future__ import annotations

"""
Read-side queries over the task store.

Filtering, sorting, pagination and the ranking used to pick the next task.
Nothing in this module mutates the repository; dotted subtask lookups return
copies.
"""

import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.ports import TaskRepo
from ..errors import ValidationError
from .task_models import Task, TaskPriority, TaskStatus


def task_id_key(task_id: str) -> tuple[int, int, str]:
    """
    Sort key for ids: numeric ids compare as integers ("3" < "10") and come
    before non-numeric ids, which compare lexicographically.
    """
    if task_id.isascii() and task_id.isdigit():
        return (0, int(task_id), "")
    return (1, 0, task_id)


class SortField(StrEnum):
    ID = "id"
    TITLE = "title"
    DESCRIPTION = "description"
    STATUS = "status"
    PRIORITY = "priority"
    DEPENDENCIES = "dependencies"


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


@dataclass(slots=True)
class TaskFilter:
    """All set criteria must match (logical AND). None means "don't care"."""

    status: TaskStatus | list[TaskStatus] | None = None
    priority: TaskPriority | list[TaskPriority] | None = None
    title_contains: str | None = None
    description_contains: str | None = None
    depends_on: str | None = None
    has_dependencies: bool | None = None
    has_subtasks: bool | None = None


@dataclass(slots=True)
class TaskSort:
    field: SortField = SortField.ID
    direction: SortDirection = SortDirection.ASC


@dataclass(slots=True)
class Pagination:
    page: int = 1
    page_size: int = 10


@dataclass(slots=True)
class TaskQuery:
    filter: TaskFilter | None = None
    sort: TaskSort | None = None
    pagination: Pagination | None = None


@dataclass(slots=True)
class TaskQueryResult:
    tasks: list[Task]
    total: int
    page: int
    page_size: int
    total_pages: int


def _as_status(value: Any) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError:
        raise ValidationError(f"Invalid status value: {value}", details={"field": "status"}) from None


def _as_priority(value: Any) -> TaskPriority:
    try:
        return TaskPriority(value)
    except ValueError:
        raise ValidationError(
            f"Invalid priority value: {value}", details={"field": "priority"}
        ) from None


def _as_set(value: Any) -> set[str] | None:
    if value is None:
        return None
    if isinstance(value, (list, tuple, set, frozenset)):
        return {str(v) for v in value}
    return {str(value)}


def _matches(task: Task, criteria: TaskFilter) -> bool:
    statuses = _as_set(criteria.status)
    if statuses is not None and task.status.value not in statuses:
        return False

    priorities = _as_set(criteria.priority)
    if priorities is not None and task.priority.value not in priorities:
        return False

    if criteria.title_contains and criteria.title_contains.lower() not in task.title.lower():
        return False

    if (
            criteria.description_contains
            and criteria.description_contains.lower() not in task.description.lower()
    ):
        return False

    if criteria.depends_on is not None and criteria.depends_on not in task.dependencies:
        return False

    if criteria.has_dependencies is not None and bool(task.dependencies) != criteria.has_dependencies:
        return False

    if criteria.has_subtasks is not None and bool(task.subtasks) != criteria.has_subtasks:
        return False

    return True


def _sort_key(field: SortField):
    if field == SortField.ID:
        return lambda t: task_id_key(t.id)
    if field == SortField.TITLE:
        return lambda t: t.title.lower()
    if field == SortField.DESCRIPTION:
        return lambda t: t.description.lower()
    if field == SortField.STATUS:
        return lambda t: t.status.value
    if field == SortField.PRIORITY:
        return lambda t: t.priority.rank
    if field == SortField.DEPENDENCIES:
        return lambda t: len(t.dependencies)
    raise ValidationError(f"Unknown sort field: {field}", details={"field": "sort"})


class TaskQueryService:
    """Queries over a TaskRepo. Results are the stored records unless stated otherwise."""

    def __init__(self, repository: TaskRepo) -> None:
        self._repo = repository

    # ---- filtering / paging ----

    def filter_tasks(self, criteria: TaskFilter | None = None) -> list[Task]:
        tasks = self._repo.get_all()
        if criteria is None:
            return tasks
        return [t for t in tasks if _matches(t, criteria)]

    def query_tasks(self, options: TaskQuery | None = None) -> TaskQueryResult:
        options = options or TaskQuery()
        tasks = self.filter_tasks(options.filter)

        if options.sort is not None:
            try:
                field = SortField(options.sort.field)
                reverse = SortDirection(options.sort.direction) == SortDirection.DESC
            except ValueError:
                raise ValidationError(
                    f"Invalid sort options: {options.sort.field} {options.sort.direction}",
                    details={"field": "sort"},
                ) from None
            # sorted() is stable, and stays stable with reverse=True.
            tasks = sorted(tasks, key=_sort_key(field), reverse=reverse)

        total = len(tasks)
        if options.pagination is None:
            return TaskQueryResult(
                tasks=tasks,
                total=total,
                page=1,
                page_size=total,
                total_pages=1 if total else 0,
            )

        page = options.pagination.page
        page_size = options.pagination.page_size
        if page < 1 or page_size < 1:
            raise ValidationError(
                "Invalid pagination: page and page_size must be >= 1",
                details={"page": page, "page_size": page_size},
            )

        start = (page - 1) * page_size
        return TaskQueryResult(
            tasks=tasks[start:start + page_size],
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size),
        )

    # ---- convenience ----

    def get_tasks_by_status(self, status: TaskStatus | str | None = None) -> list[Task]:
        if status is None:
            return self._repo.get_all()
        return self.filter_tasks(TaskFilter(status=_as_status(status)))

    def get_pending_tasks(self) -> list[Task]:
        return self.get_tasks_by_status(TaskStatus.PENDING)

    def get_completed_tasks(self) -> list[Task]:
        return self.get_tasks_by_status(TaskStatus.DONE)

    def get_in_progress_tasks(self) -> list[Task]:
        return self.get_tasks_by_status(TaskStatus.IN_PROGRESS)

    def get_high_priority_tasks(self) -> list[Task]:
        return self.filter_tasks(TaskFilter(priority=TaskPriority.HIGH))

    def get_independent_tasks(self) -> list[Task]:
        return self.filter_tasks(TaskFilter(has_dependencies=False))

    # ---- readiness / ranking ----

    def _dependencies_done(self, task: Task) -> bool:
        # Unknown dependency ids count as satisfied.
        for dep_id in task.dependencies:
            dep = self._repo.get(dep_id)
            if dep is not None and dep.status != TaskStatus.DONE:
                return False
        return True

    def get_ready_tasks(self) -> list[Task]:
        return [
            t for t in self._repo.get_all()
            if t.status == TaskStatus.PENDING and self._dependencies_done(t)
        ]

    def find_next_task(
            self,
            *,
            priority: TaskPriority | str | None = None,
            contains_text: str | None = None,
    ) -> Task | None:
        wanted_priority = _as_priority(priority) if priority else None
        needle = contains_text.lower() if contains_text else None

        candidates: list[Task] = []
        for task in self._repo.get_all():
            if task.status == TaskStatus.DONE:
                continue
            if wanted_priority is not None and task.priority != wanted_priority:
                continue
            if needle and needle not in task.title.lower() and needle not in task.description.lower():
                continue
            if not self._dependencies_done(task):
                continue
            candidates.append(task)

        if not candidates:
            return None
        return min(candidates, key=lambda t: (t.priority.rank, task_id_key(t.id)))

    # ---- lookup ----

    def get_task_by_id(self, task_id: str, tasks: list[Task] | None = None) -> Task | None:
        """
        Lookup by id, including dotted subtask addressing ("<parent>.<index>",
        1-based). Subtasks come back as copies carrying the dotted id.
        """
        pool = tasks if tasks is not None else self._repo.get_all()
        task_id = str(task_id)

        if "." not in task_id:
            return next((t for t in pool if t.id == task_id), None)

        parent_id, _, index_raw = task_id.partition(".")
        parent = next((t for t in pool if t.id == parent_id), None)
        if parent is None or not parent.subtasks:
            return None

        try:
            index = int(index_raw)
        except ValueError:
            return None
        if index < 1 or index > len(parent.subtasks):
            return None

        subtask = parent.subtasks[index - 1].copy()
        subtask.id = task_id
        subtask.dependencies = list(subtask.dependencies or [])
        return subtask

    def get_filtered_tasks(
            self,
            tasks: list[Task],
            *,
            status: TaskStatus | str | None = None,
            with_subtasks: bool = True,
    ) -> list[Task]:
        out = list(tasks)
        if status is not None:
            wanted = _as_status(status)
            out = [t for t in out if t.status == wanted]
        if not with_subtasks:
            out = [_without_subtasks(t) for t in out]
        return out


def _without_subtasks(task: Task) -> Task:
    copy = task.copy()
    copy.subtasks = None
    return copy
