# src/agentpm/tasks/transaction_log.py

from __future__ import annotations

import logging
from typing import Any

from ..errors import NoTransactionError, TransactionInProgressError
from .task_models import ChangeKind, Task, TransactionChange

logger = logging.getLogger(__name__)


class TransactionLog:
    """
    Ordered change list for one transaction at a time (no nesting).

    The log only records; reverting store state on rollback is the task
    manager's job.
    """

    def __init__(self) -> None:
        self._open = False
        self._changes: list[TransactionChange] = []

    def is_open(self) -> bool:
        return self._open

    @property
    def changes(self) -> list[TransactionChange]:
        return list(self._changes)

    def begin(self) -> None:
        if self._open:
            raise TransactionInProgressError("A transaction is already in progress")
        self._open = True
        self._changes = []
        logger.debug("Transaction started")

    def record_change(
            self,
            kind: ChangeKind | str,
            task: Task,
            metadata: dict[str, Any] | None = None,
    ) -> None:
        # Changes outside a transaction are not tracked.
        if not self._open:
            return
        self._changes.append(TransactionChange(kind=ChangeKind(kind), task=task, metadata=metadata))

    def commit(self) -> list[TransactionChange]:
        if not self._open:
            raise NoTransactionError("No transaction in progress")
        changes = self._changes
        self._changes = []
        self._open = False
        logger.debug("Transaction committed (%d change(s))", len(changes))
        return changes

    def rollback(self) -> None:
        if not self._open:
            raise NoTransactionError("No transaction in progress")
        discarded = len(self._changes)
        self._changes = []
        self._open = False
        logger.debug("Transaction rolled back (%d change(s) discarded)", discarded)
