# src/agentpm/core/events.py

from __future__ import annotations

"""
In-process publish/subscribe bus.

Subscribers register for a named topic (or "*" for every topic) and get an
opaque subscription id back for unsubscribe(). Delivery is synchronous and in
subscription order. A failing handler is logged and never breaks the publisher
or the other handlers.
"""

import itertools
import logging
import time
from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

WILDCARD = "*"


class TaskEvent(StrEnum):
    TASK_CREATED = "task.created"
    TASK_UPDATED = "task.updated"
    TASK_DELETED = "task.deleted"
    TASK_STATUS_CHANGED = "task.status_changed"
    DEPENDENCY_ADDED = "dependency.added"
    DEPENDENCY_REMOVED = "dependency.removed"
    TASKS_SAVED = "tasks.saved"
    TASKS_LOADED = "tasks.loaded"
    TRANSACTION_STARTED = "transaction.started"
    TRANSACTION_COMMITTED = "transaction.committed"
    TRANSACTION_ROLLED_BACK = "transaction.rolled_back"
    ERROR = "error"
    OPERATION_STATUS_CHANGED = "operation.status_changed"


@dataclass(slots=True, frozen=True)
class Event:
    topic: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


EventHandler = Callable[[Event], Any]


@dataclass(slots=True, frozen=True)
class _Subscription:
    subscription_id: str
    topic: str
    handler: EventHandler
    name: str


class EventBus:
    def __init__(self) -> None:
        self._subs: dict[str, list[_Subscription]] = defaultdict(list)
        self._ids = itertools.count(1)

    def subscribe(self, topic: str, handler: EventHandler, *, name: str | None = None) -> str:
        sub = _Subscription(
            subscription_id=f"sub-{next(self._ids)}",
            topic=str(topic),
            handler=handler,
            name=name or getattr(handler, "__qualname__", repr(handler)),
        )
        self._subs[sub.topic].append(sub)
        logger.debug("Subscription added: %s -> %s", sub.name, sub.topic)
        return sub.subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        for topic, subs in self._subs.items():
            for i, sub in enumerate(subs):
                if sub.subscription_id == subscription_id:
                    subs.pop(i)
                    logger.debug("Subscription removed: %s -> %s", sub.name, topic)
                    return True
        return False

    def subscriber_count(self, topic: str | None = None) -> int:
        if topic is None:
            return sum(len(s) for s in self._subs.values())
        return len(self._subs.get(str(topic), ()))

    def publish(self, topic: str, payload: dict[str, Any] | None = None) -> Event:
        event = Event(topic=str(topic), payload=dict(payload or {}))

        # Snapshot so handlers may (un)subscribe while being notified.
        targets = [*self._subs.get(event.topic, ()), *self._subs.get(WILDCARD, ())]
        for sub in targets:
            try:
                sub.handler(event)
            except Exception:
                logger.exception("Event handler %s failed for %s", sub.name, event.topic)
        return event
