# src/agentpm/operations/operation_tracker.py

from __future__ import annotations

"""
Long-running operation tracker.

submit() hands back an id immediately and runs the work as an asyncio task.
At most `max_concurrent` work functions run at once; the rest wait on a
semaphore while still reported as pending.

Pollers use status(id). Unknown ids are not an error: they come back as a
view with status "not-found" so a poller can treat it like any other state.

Finished operations move to a bounded history; when it overflows, the single
entry with the oldest end time is evicted.
"""

import asyncio
import functools
import inspect
import logging
import time
import uuid
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from ..core.events import TaskEvent
from ..core.ports import EventPublisher
from ..errors import ErrorCode
from .operation_models import (
    OPERATION_EXECUTION_ERROR,
    Operation,
    OperationContext,
    OperationError,
    OperationOutcome,
    OperationProgress,
    OperationStatus,
    OperationView,
    ProgressSample,
)

logger = logging.getLogger(__name__)

WorkFn = Callable[[Any, Any, OperationContext], Any]
ProgressCallback = Callable[[OperationView], Any]


class _OperationLogAdapter(logging.LoggerAdapter):
    def process(self, msg: Any, kwargs: Any) -> tuple[Any, Any]:
        return f"[op {self.extra['operation_id']}] {msg}", kwargs


class OperationTracker:
    def __init__(
            self,
            *,
            max_completed: int = 100,
            max_concurrent: int = 4,
            events: EventPublisher | None = None,
            clock: Callable[[], float] = time.time,
    ) -> None:
        self._max_completed = int(max_completed)
        self._semaphore = asyncio.Semaphore(max(1, int(max_concurrent)))
        self._events = events
        self._clock = clock

        self._active: dict[str, Operation] = {}
        self._completed: OrderedDict[str, Operation] = OrderedDict()
        self._handles: dict[str, asyncio.Task[None]] = {}
        self._callbacks: dict[str, ProgressCallback] = {}
        self._callback_futures: set[asyncio.Future[Any]] = set()

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def _publish_status(self, op: Operation) -> None:
        if self._events is None:
            return
        self._events.publish(
            TaskEvent.OPERATION_STATUS_CHANGED,
            {"operation_id": op.id, "status": op.status, "operation": op.view()},
        )

    # ---- submit / run ----

    def submit(
            self,
            work_fn: WorkFn,
            args: Any = None,
            *,
            operation_type: str = "generic",
            logger: logging.Logger | logging.LoggerAdapter | None = None,
            on_progress: ProgressCallback | None = None,
            session: Any = None,
    ) -> str:
        """
        Schedule work_fn(args, logger, context) and return its id without waiting.

        Must be called from inside a running event loop. on_progress may be a
        coroutine function; its coroutines are scheduled, not awaited.
        """
        loop = asyncio.get_running_loop()

        op_id = f"op-{uuid.uuid4()}"
        now = self._now_ms()
        op = Operation(id=op_id, operation_type=operation_type, start_time=now)
        op.samples.append(ProgressSample(timestamp_ms=now, progress=0.0))
        self._active[op_id] = op
        if on_progress is not None:
            self._callbacks[op_id] = on_progress

        op_logger = logger or _OperationLogAdapter(
            logging.getLogger(__name__), {"operation_id": op_id}
        )

        handle = loop.create_task(self._run(op, work_fn, args, op_logger, session), name=op_id)
        self._handles[op_id] = handle
        handle.add_done_callback(lambda _t: self._handles.pop(op_id, None))

        logging.getLogger(__name__).debug("Operation submitted id=%s type=%s", op_id, operation_type)
        self._publish_status(op)
        return op_id

    async def _run(
            self,
            op: Operation,
            work_fn: WorkFn,
            args: Any,
            op_logger: Any,
            session: Any,
    ) -> None:
        async with self._semaphore:
            op.status = OperationStatus.RUNNING
            self._publish_status(op)

            context = OperationContext(
                report_progress=lambda p: self.report_progress(op.id, p),
                session=session,
            )
            try:
                value = work_fn(args, op_logger, context)
                if inspect.isawaitable(value):
                    value = await value
                outcome = OperationOutcome.coerce(value)
            except Exception as e:
                op_logger.exception("Work function raised")
                outcome = OperationOutcome(
                    success=False,
                    error=OperationError(
                        code=OPERATION_EXECUTION_ERROR,
                        message=str(e) or type(e).__name__,
                    ),
                )

            self._settle(op, outcome)

    def _settle(self, op: Operation, outcome: OperationOutcome) -> None:
        op.end_time = self._now_ms()
        if outcome.success:
            op.status = OperationStatus.COMPLETED
            op.result = outcome.data
        else:
            op.status = OperationStatus.FAILED
            op.error = outcome.error or OperationError(
                code=ErrorCode.UNKNOWN_ERROR.value,
                message="Operation failed without error details",
            )

        self._active.pop(op.id, None)
        self._callbacks.pop(op.id, None)
        self._completed[op.id] = op

        if len(self._completed) > self._max_completed:
            oldest_id = min(self._completed, key=lambda k: self._completed[k].end_time or 0.0)
            del self._completed[oldest_id]
            logger.debug("Evicted operation %s from history", oldest_id)

        logger.info("Operation %s %s (%s)", op.id, op.status, op.operation_type)
        self._publish_status(op)

    # ---- progress ----

    def report_progress(
            self,
            operation_id: str,
            progress: OperationProgress | float,
            message: str | None = None,
            **steps: Any,
    ) -> None:
        op = self._active.get(operation_id)
        if op is None or op.status.is_terminal:
            return

        update = (
            progress
            if isinstance(progress, OperationProgress)
            else OperationProgress(progress=float(progress), message=message, **steps)
        )

        now = self._now_ms()
        op.samples.append(ProgressSample(timestamp_ms=now, progress=update.progress))
        op.progress = update.progress
        if update.message:
            op.status_message = update.message
        if update.current_step is not None:
            op.current_step = update.current_step
        if update.total_steps is not None:
            op.total_steps = update.total_steps
        if update.current_step_number is not None:
            op.current_step_number = update.current_step_number
        if update.steps is not None:
            op.steps = list(update.steps)

        self._estimate(op, now)

        callback = self._callbacks.get(operation_id)
        if callback is not None:
            try:
                pending = callback(op.view())
                if inspect.isawaitable(pending):
                    future = asyncio.ensure_future(pending)
                    self._callback_futures.add(future)
                    future.add_done_callback(
                        functools.partial(self._callback_done, operation_id)
                    )
            except Exception:
                logger.warning(
                    "Progress callback failed for %s", operation_id, exc_info=True
                )

    def _callback_done(self, operation_id: str, future: asyncio.Future[Any]) -> None:
        self._callback_futures.discard(future)
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.warning("Progress callback failed for %s", operation_id, exc_info=exc)

    @staticmethod
    def _estimate(op: Operation, now_ms: float) -> None:
        """Linear extrapolation over the sample window; bad rates clear the estimate."""
        op.estimated_time_remaining = None
        op.estimated_end_time = None

        if len(op.samples) < 2 or not (0 < op.progress < 100):
            return

        first, last = op.samples[0], op.samples[-1]
        progress_diff = last.progress - first.progress
        time_diff = last.timestamp_ms - first.timestamp_ms
        if progress_diff <= 0 or time_diff <= 0:
            return

        rate = progress_diff / time_diff
        remaining_ms = (100 - last.progress) / rate
        op.estimated_time_remaining = round(remaining_ms / 1000)
        op.estimated_end_time = now_ms + remaining_ms

    # ---- queries ----

    def status(self, operation_id: str) -> OperationView:
        op = self._active.get(operation_id) or self._completed.get(operation_id)
        if op is None:
            return OperationView.not_found(operation_id)
        return op.view()

    def result(self, operation_id: str) -> tuple[Any, OperationError | None] | None:
        op = self._completed.get(operation_id)
        if op is None:
            return None
        return op.result, op.error

    def list_operations(self) -> list[OperationView]:
        return [op.view() for op in self._active.values()]

    def history_size(self) -> int:
        return len(self._completed)

    async def wait(self, operation_id: str) -> OperationView:
        handle = self._handles.get(operation_id)
        if handle is not None:
            await asyncio.shield(handle)
        return self.status(operation_id)

    async def wait_all(self) -> None:
        handles = list(self._handles.values())
        if handles:
            await asyncio.gather(*handles, return_exceptions=True)

    def cancel(self, operation_id: str) -> bool:
        """
        Cancellation is not supported: the request is accepted and always
        reports False. Work runs to completion.
        """
        logger.debug("Cancel requested for %s (not supported)", operation_id)
        return False


