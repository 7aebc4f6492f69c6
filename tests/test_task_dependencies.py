# tests/test_task_dependencies.py

from __future__ import annotations

import pytest

from agentpm.errors import CircularDependencyError, NotFoundError
from agentpm.tasks.task_dependencies import TaskDependencyManager
from agentpm.tasks.task_models import Task
from agentpm.tasks.task_repository import TaskRepository


@pytest.fixture()
def repo() -> TaskRepository:
    r = TaskRepository()
    for task_id in ("A", "B", "C", "D"):
        r.add(Task(id=task_id, title=f"task {task_id}", description="d"))
    return r


@pytest.fixture()
def deps(repo: TaskRepository) -> TaskDependencyManager:
    return TaskDependencyManager(repo)


def test_reverse_edge_is_rejected_as_cycle(deps: TaskDependencyManager, repo: TaskRepository) -> None:
    deps.add_dependency("B", "A")
    with pytest.raises(CircularDependencyError):
        deps.add_dependency("A", "B")
    assert repo.get("A").dependencies == []


def test_indirect_cycle_is_detected(deps: TaskDependencyManager) -> None:
    deps.add_dependency("A", "B")
    deps.add_dependency("B", "C")

    assert deps.has_circular_dependency("C", "A") is True
    assert deps.has_circular_dependency("D", "A") is False
    with pytest.raises(CircularDependencyError):
        deps.add_dependency("C", "A")


def test_self_edge_is_a_cycle(deps: TaskDependencyManager) -> None:
    with pytest.raises(CircularDependencyError):
        deps.add_dependency("A", "A")


def test_both_ends_must_exist(deps: TaskDependencyManager) -> None:
    with pytest.raises(NotFoundError):
        deps.add_dependency("missing", "A")
    with pytest.raises(NotFoundError):
        deps.add_dependency("A", "missing")
    with pytest.raises(NotFoundError):
        deps.remove_dependency("missing", "A")


def test_existing_edge_returns_task_unchanged(deps: TaskDependencyManager) -> None:
    first = deps.add_dependency("A", "B")
    again = deps.add_dependency("A", "B")
    assert again is first
    assert again.dependencies == ["B"]


def test_remove_dependency_is_idempotent(deps: TaskDependencyManager, repo: TaskRepository) -> None:
    deps.add_dependency("A", "B")
    deps.remove_dependency("A", "B")
    deps.remove_dependency("A", "B")
    assert repo.get("A").dependencies == []


def test_cycle_walk_skips_unknown_ids(deps: TaskDependencyManager, repo: TaskRepository) -> None:
    repo.update("B", Task(id="B", title="b", description="d", dependencies=["ghost"]))
    assert deps.has_circular_dependency("A", "B") is False


def test_find_dependents_and_strip_everywhere(deps: TaskDependencyManager, repo: TaskRepository) -> None:
    deps.add_dependency("B", "A")
    deps.add_dependency("C", "A")
    deps.add_dependency("C", "D")

    assert {t.id for t in deps.find_dependent_tasks("A")} == {"B", "C"}

    updated = deps.remove_from_all_dependencies("A")
    assert {t.id for t in updated} == {"B", "C"}
    assert repo.get("B").dependencies == []
    assert repo.get("C").dependencies == ["D"]
    assert deps.find_dependent_tasks("A") == []
