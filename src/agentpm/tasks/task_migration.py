# src/agentpm/tasks/task_migration.py

from __future__ import annotations

"""
Schema migration for persisted task collections.

migrate() accepts anything (old files, partial dicts, garbage) and always
returns a well-formed TasksData at SCHEMA_VERSION. It never raises.
"""

import itertools
import logging
from collections.abc import Iterator, Mapping
from typing import Any

from .task_models import (
    DEFAULT_PROJECT_NAME,
    SCHEMA_VERSION,
    Task,
    TaskPriority,
    TaskStatus,
    TasksData,
    TasksMetadata,
    utc_now_iso,
)

logger = logging.getLogger(__name__)

UNTITLED_TASK = "Untitled Task"
NO_DESCRIPTION = "No description provided"

_METADATA_KEYS = ("version", "created", "updated", "projectName")


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else None


class TaskMigrationService:
    def __init__(self, project_name: str = DEFAULT_PROJECT_NAME) -> None:
        self._project_name = project_name

    def needs_migration(self, payload: Any) -> bool:
        if not isinstance(payload, Mapping):
            return True
        if not isinstance(payload.get("tasks"), list):
            return True

        metadata = payload.get("metadata")
        if not isinstance(metadata, Mapping):
            return True

        for key in _METADATA_KEYS:
            value = metadata.get(key)
            if not isinstance(value, str) or not value:
                return True
        return False

    def migrate(self, payload: Any) -> TasksData:
        # Fresh counter per call: generated ids never depend on earlier runs.
        counter = itertools.count(1)

        if not isinstance(payload, Mapping):
            logger.info("Migration: payload is not an object, starting an empty collection")
            return TasksData(tasks=[], metadata=TasksMetadata(project_name=self._project_name))

        raw_tasks = payload.get("tasks")
        tasks = (
            [self.migrate_task(entry, counter) for entry in raw_tasks]
            if isinstance(raw_tasks, list)
            else []
        )

        raw_meta = payload.get("metadata")
        raw_meta = raw_meta if isinstance(raw_meta, Mapping) else {}
        now = utc_now_iso()
        metadata = TasksMetadata(
            version=SCHEMA_VERSION,
            created=_text(raw_meta.get("created")) or now,
            updated=_text(raw_meta.get("updated")) or now,
            project_name=_text(raw_meta.get("projectName")) or self._project_name,
        )

        logger.info("Migrated %d task(s) to schema %s", len(tasks), SCHEMA_VERSION)
        return TasksData(tasks=tasks, metadata=metadata)

    def migrate_task(self, entry: Any, counter: Iterator[int] | None = None) -> Task:
        """
        Rebuild one task entry field by field. counter supplies ids for entries
        that have none; subtasks draw from the same counter.
        """
        if counter is None:
            counter = itertools.count(1)

        if not isinstance(entry, Mapping):
            return Task(id=str(next(counter)), title=UNTITLED_TASK, description=NO_DESCRIPTION)

        task_id = _text(entry.get("id")) or str(next(counter))

        raw_deps = entry.get("dependencies")
        dependencies: list[str] = []
        if isinstance(raw_deps, list):
            for dep in raw_deps:
                dep_id = str(dep).strip()
                if dep_id and dep_id != task_id and dep_id not in dependencies:
                    dependencies.append(dep_id)

        raw_subtasks = entry.get("subtasks")
        subtasks = (
            [self.migrate_task(s, counter) for s in raw_subtasks]
            if isinstance(raw_subtasks, list) and raw_subtasks
            else None
        )

        metadata = entry.get("metadata")

        return Task(
            id=task_id,
            title=_text(entry.get("title")) or UNTITLED_TASK,
            description=_text(entry.get("description")) or NO_DESCRIPTION,
            status=TaskStatus.from_raw(entry.get("status")),
            priority=TaskPriority.from_raw(entry.get("priority")),
            dependencies=dependencies,
            details=_text(entry.get("details")),
            test_strategy=_text(entry.get("testStrategy")),
            subtasks=subtasks,
            metadata=dict(metadata) if isinstance(metadata, Mapping) and metadata else None,
        )
