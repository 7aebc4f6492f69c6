# tests/test_task_queries.py

from __future__ import annotations

import pytest

from agentpm.errors import ValidationError
from agentpm.tasks.task_models import Task, TaskPriority, TaskStatus
from agentpm.tasks.task_queries import (
    Pagination,
    SortDirection,
    SortField,
    TaskFilter,
    TaskQuery,
    TaskQueryService,
    TaskSort,
    task_id_key,
)
from agentpm.tasks.task_repository import TaskRepository


def _repo(*tasks: Task) -> TaskRepository:
    repo = TaskRepository()
    for t in tasks:
        repo.add(t)
    return repo


def _t(task_id: str, **kw) -> Task:
    kw.setdefault("title", f"task {task_id}")
    kw.setdefault("description", "desc")
    return Task(id=task_id, **kw)


def test_task_id_key_orders_numbers_numerically_then_text() -> None:
    ids = ["10", "b", "3", "a", "2"]
    assert sorted(ids, key=task_id_key) == ["2", "3", "10", "a", "b"]


def test_find_next_task_breaks_ties_by_numeric_id() -> None:
    queries = TaskQueryService(_repo(_t("10"), _t("3")))
    nxt = queries.find_next_task()
    assert nxt is not None
    assert nxt.id == "3"


def test_find_next_task_prefers_priority_then_skips_blocked_and_done() -> None:
    queries = TaskQueryService(
        _repo(
            _t("1", priority=TaskPriority.LOW),
            _t("2", priority=TaskPriority.HIGH, dependencies=["4"]),
            _t("3", priority=TaskPriority.MEDIUM, status=TaskStatus.IN_PROGRESS),
            _t("4", priority=TaskPriority.HIGH, status=TaskStatus.DONE),
            _t("5", priority=TaskPriority.HIGH, dependencies=["1"]),
        )
    )
    # "2" is high and its only dependency is done; "5" is blocked by "1".
    assert queries.find_next_task().id == "2"
    assert queries.find_next_task(priority="medium").id == "3"
    assert queries.find_next_task(contains_text="TASK 1").id == "1"
    assert queries.find_next_task(priority="high", contains_text="nope") is None


def test_ready_tasks_treat_missing_dependencies_as_satisfied() -> None:
    queries = TaskQueryService(
        _repo(
            _t("1"),
            _t("2", dependencies=["1"]),
            _t("3", dependencies=["ghost"]),
            _t("4", status=TaskStatus.DONE),
        )
    )
    assert [t.id for t in queries.get_ready_tasks()] == ["1", "3"]


def test_filter_is_conjunctive_and_case_insensitive() -> None:
    queries = TaskQueryService(
        _repo(
            _t("1", title="Build API", priority=TaskPriority.HIGH),
            _t("2", title="build UI", priority=TaskPriority.LOW, dependencies=["1"]),
            _t("3", title="Docs", subtasks=[_t("1")]),
        )
    )

    got = queries.filter_tasks(TaskFilter(title_contains="BUILD", priority=TaskPriority.LOW))
    assert [t.id for t in got] == ["2"]

    assert [t.id for t in queries.filter_tasks(TaskFilter(depends_on="1"))] == ["2"]
    assert [t.id for t in queries.filter_tasks(TaskFilter(has_dependencies=False))] == ["1", "3"]
    assert [t.id for t in queries.filter_tasks(TaskFilter(has_subtasks=True))] == ["3"]
    assert [t.id for t in queries.filter_tasks(TaskFilter(status=[TaskStatus.PENDING]))] == ["1", "2", "3"]


def test_query_without_pagination_returns_one_page() -> None:
    queries = TaskQueryService(_repo(_t("1"), _t("2"), _t("3")))
    result = queries.query_tasks(TaskQuery())
    assert result.total == 3
    assert result.page == 1
    assert result.page_size == 3
    assert result.total_pages == 1
    assert len(result.tasks) == 3


def test_query_sorts_then_paginates() -> None:
    queries = TaskQueryService(_repo(*[_t(str(i)) for i in (5, 1, 12, 3, 2)]))
    result = queries.query_tasks(
        TaskQuery(
            sort=TaskSort(field=SortField.ID, direction=SortDirection.DESC),
            pagination=Pagination(page=2, page_size=2),
        )
    )
    assert [t.id for t in result.tasks] == ["3", "2"]
    assert result.total == 5
    assert result.total_pages == 3


def test_sort_by_priority_rank_is_stable() -> None:
    queries = TaskQueryService(
        _repo(
            _t("1", priority=TaskPriority.LOW),
            _t("2", priority=TaskPriority.HIGH),
            _t("3", priority=TaskPriority.LOW),
            _t("4", priority=TaskPriority.MEDIUM),
        )
    )
    result = queries.query_tasks(TaskQuery(sort=TaskSort(field=SortField.PRIORITY)))
    assert [t.id for t in result.tasks] == ["2", "4", "1", "3"]


@pytest.mark.parametrize("pagination", [Pagination(page=0, page_size=5), Pagination(page=1, page_size=0)])
def test_invalid_pagination_raises(pagination: Pagination) -> None:
    queries = TaskQueryService(_repo(_t("1")))
    with pytest.raises(ValidationError):
        queries.query_tasks(TaskQuery(pagination=pagination))


def test_dotted_lookup_returns_copy_with_external_id() -> None:
    child = _t("1", title="child", dependencies=["2"])
    repo = _repo(_t("7", subtasks=[child, _t("2", title="second")]))
    queries = TaskQueryService(repo)

    sub = queries.get_task_by_id("7.1")
    assert sub is not None
    assert sub.id == "7.1"
    assert sub.title == "child"
    assert sub.dependencies == ["2"]

    # The stored subtask keeps its positional id.
    assert repo.get("7").subtasks[0].id == "1"

    assert queries.get_task_by_id("7.3") is None
    assert queries.get_task_by_id("7.0") is None
    assert queries.get_task_by_id("7.x") is None
    assert queries.get_task_by_id("8.1") is None
    assert queries.get_task_by_id("7").id == "7"


def test_get_filtered_tasks_can_drop_subtasks_without_touching_the_store() -> None:
    repo = _repo(_t("1", subtasks=[_t("1")]), _t("2", status=TaskStatus.DONE))
    queries = TaskQueryService(repo)

    got = queries.get_filtered_tasks(repo.get_all(), status="pending", with_subtasks=False)
    assert [t.id for t in got] == ["1"]
    assert got[0].subtasks is None
    assert repo.get("1").subtasks is not None


def test_convenience_getters() -> None:
    queries = TaskQueryService(
        _repo(
            _t("1", status=TaskStatus.DONE),
            _t("2", status=TaskStatus.IN_PROGRESS, priority=TaskPriority.HIGH),
            _t("3", dependencies=["1"]),
        )
    )
    assert [t.id for t in queries.get_completed_tasks()] == ["1"]
    assert [t.id for t in queries.get_in_progress_tasks()] == ["2"]
    assert [t.id for t in queries.get_pending_tasks()] == ["3"]
    assert [t.id for t in queries.get_high_priority_tasks()] == ["2"]
    assert [t.id for t in queries.get_independent_tasks()] == ["1", "2"]
    assert len(queries.get_tasks_by_status()) == 3

    with pytest.raises(ValidationError):
        queries.get_tasks_by_status("blocked")


def test_non_ascii_digits_sort_as_text() -> None:
    assert sorted(["²", "10", "2"], key=task_id_key) == ["2", "10", "²"]

    queries = TaskQueryService(_repo(_t("²"), _t("7")))
    assert queries.find_next_task().id == "7"
    result = queries.query_tasks(TaskQuery(sort=TaskSort(field=SortField.ID)))
    assert [t.id for t in result.tasks] == ["7", "²"]
