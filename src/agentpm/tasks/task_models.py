# src/agentpm/tasks/task_models.py

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

SCHEMA_VERSION = "1.0.0"
DEFAULT_PROJECT_NAME = "AgentPM Project"


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat().replace("+00:00", "Z")


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    DONE = "done"
    DEFERRED = "deferred"
    CANCELLED = "cancelled"

    @classmethod
    def from_raw(cls, raw: Any) -> TaskStatus:
        """Lenient parse used by migration: unknown values fall back to pending."""
        if not raw:
            return cls.PENDING
        try:
            return cls(str(raw))
        except ValueError:
            return cls.PENDING


class TaskPriority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Fixed ordering used for ranking: high < medium < low."""
        return _PRIORITY_RANK[self]

    @classmethod
    def from_raw(cls, raw: Any) -> TaskPriority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(str(raw))
        except ValueError:
            return cls.MEDIUM


_PRIORITY_RANK = {
    TaskPriority.HIGH: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.LOW: 2,
}


@dataclass(slots=True)
class Task:
    """
    A work item.

    Subtasks share the same shape and live nested under their parent. A subtask's
    stored id is its 1-based position; the dotted "<parent>.<index>" form is only
    produced when a subtask is handed out to callers.
    """

    id: str
    title: str
    description: str
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    dependencies: list[str] = field(default_factory=list)

    details: str | None = None
    test_strategy: str | None = None
    subtasks: list[Task] | None = None
    metadata: dict[str, Any] | None = None

    def copy(self) -> Task:
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "dependencies": list(self.dependencies),
        }
        if self.details:
            out["details"] = self.details
        if self.test_strategy:
            out["testStrategy"] = self.test_strategy
        if self.subtasks:
            out["subtasks"] = [s.to_dict() for s in self.subtasks]
        if self.metadata:
            out["metadata"] = copy.deepcopy(self.metadata)
        return out

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> Task:
        """Build a Task from the persisted shape. Raises ValueError on unknown enums."""
        subtasks_raw = raw.get("subtasks")
        return cls(
            id=str(raw["id"]),
            title=str(raw.get("title") or ""),
            description=str(raw.get("description") or ""),
            status=TaskStatus(raw.get("status") or TaskStatus.PENDING),
            priority=TaskPriority(raw.get("priority") or TaskPriority.MEDIUM),
            dependencies=[str(d) for d in raw.get("dependencies") or []],
            details=raw.get("details"),
            test_strategy=raw.get("testStrategy"),
            subtasks=[cls.from_dict(s) for s in subtasks_raw] if subtasks_raw else None,
            metadata=copy.deepcopy(raw["metadata"]) if raw.get("metadata") else None,
        )


@dataclass(slots=True)
class TasksMetadata:
    version: str = SCHEMA_VERSION
    created: str = field(default_factory=utc_now_iso)
    updated: str = field(default_factory=utc_now_iso)
    project_name: str = DEFAULT_PROJECT_NAME

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "created": self.created,
            "updated": self.updated,
            "projectName": self.project_name,
        }


@dataclass(slots=True)
class TasksData:
    """The persisted aggregate: every top-level task plus collection metadata."""

    tasks: list[Task] = field(default_factory=list)
    metadata: TasksMetadata = field(default_factory=TasksMetadata)

    def to_dict(self) -> dict[str, Any]:
        return {
            "tasks": [t.to_dict() for t in self.tasks],
            "metadata": self.metadata.to_dict(),
        }


class ChangeKind(StrEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    ADD_DEPENDENCY = "add-dependency"
    REMOVE_DEPENDENCY = "remove-dependency"


@dataclass(slots=True, frozen=True)
class TransactionChange:
    kind: ChangeKind
    task: Task
    metadata: dict[str, Any] | None = None
