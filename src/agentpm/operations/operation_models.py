# src/agentpm/operations/operation_models.py

from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

PROGRESS_WINDOW = 10

OPERATION_NOT_FOUND = "OPERATION_NOT_FOUND"
OPERATION_EXECUTION_ERROR = "OPERATION_EXECUTION_ERROR"


class OperationStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    # Reserved: cancel() exists but never succeeds.
    CANCELLED = "cancelled"
    NOT_FOUND = "not-found"

    @property
    def is_terminal(self) -> bool:
        return self in (OperationStatus.COMPLETED, OperationStatus.FAILED, OperationStatus.CANCELLED)


@dataclass(slots=True, frozen=True)
class OperationError:
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"code": self.code, "message": self.message}


@dataclass(slots=True, frozen=True)
class ProgressSample:
    timestamp_ms: float
    progress: float


@dataclass(slots=True)
class OperationProgress:
    """What a running work function reports."""

    progress: float
    message: str | None = None
    current_step: str | None = None
    total_steps: int | None = None
    current_step_number: int | None = None
    steps: list[str] | None = None


@dataclass(slots=True)
class OperationOutcome:
    """Settlement value of a work function."""

    success: bool
    data: Any = None
    error: OperationError | None = None

    @classmethod
    def coerce(cls, value: Any) -> OperationOutcome:
        """Accept an OperationOutcome or the {"success", "data", "error"} mapping shape."""
        if isinstance(value, OperationOutcome):
            return value
        if isinstance(value, Mapping):
            raw_error = value.get("error")
            error: OperationError | None = None
            if isinstance(raw_error, OperationError):
                error = raw_error
            elif isinstance(raw_error, Mapping):
                error = OperationError(
                    code=str(raw_error.get("code") or "UNKNOWN_ERROR"),
                    message=str(raw_error.get("message") or "Unknown error"),
                )
            return cls(success=bool(value.get("success")), data=value.get("data"), error=error)
        # A bare value is treated as successful data.
        return cls(success=True, data=value)


@dataclass(slots=True, frozen=True)
class OperationContext:
    """Handed to the work function alongside its args and logger."""

    report_progress: Callable[[OperationProgress | float], None]
    session: Any = None


@dataclass(slots=True)
class Operation:
    id: str
    operation_type: str
    start_time: float
    status: OperationStatus = OperationStatus.PENDING
    end_time: float | None = None

    result: Any = None
    error: OperationError | None = None

    progress: float = 0.0
    status_message: str | None = None
    current_step: str | None = None
    total_steps: int | None = None
    current_step_number: int | None = None
    steps: list[str] | None = None

    estimated_time_remaining: int | None = None
    estimated_end_time: float | None = None
    samples: deque[ProgressSample] = field(default_factory=lambda: deque(maxlen=PROGRESS_WINDOW))

    def view(self) -> OperationView:
        return OperationView(
            id=self.id,
            status=self.status,
            operation_type=self.operation_type,
            start_time=self.start_time,
            end_time=self.end_time,
            progress=self.progress,
            status_message=self.status_message,
            current_step=self.current_step,
            total_steps=self.total_steps,
            current_step_number=self.current_step_number,
            steps=list(self.steps) if self.steps is not None else None,
            estimated_time_remaining=self.estimated_time_remaining,
            estimated_end_time=self.estimated_end_time,
            result=self.result,
            error=self.error,
        )


@dataclass(slots=True, frozen=True)
class OperationView:
    """Read-only snapshot handed to pollers."""

    id: str
    status: OperationStatus
    operation_type: str | None = None
    start_time: float | None = None
    end_time: float | None = None
    progress: float = 0.0
    status_message: str | None = None
    current_step: str | None = None
    total_steps: int | None = None
    current_step_number: int | None = None
    steps: list[str] | None = None
    estimated_time_remaining: int | None = None
    estimated_end_time: float | None = None
    result: Any = None
    error: OperationError | None = None

    @classmethod
    def not_found(cls, operation_id: str) -> OperationView:
        return cls(
            id=operation_id,
            status=OperationStatus.NOT_FOUND,
            error=OperationError(
                code=OPERATION_NOT_FOUND,
                message=f"Operation {operation_id} not found",
            ),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "operationType": self.operation_type,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "progress": self.progress,
            "statusMessage": self.status_message,
            "currentStep": self.current_step,
            "totalSteps": self.total_steps,
            "currentStepNumber": self.current_step_number,
            "steps": self.steps,
            "estimatedTimeRemaining": self.estimated_time_remaining,
            "estimatedEndTime": self.estimated_end_time,
            "result": self.result,
            "error": self.error.to_dict() if self.error else None,
        }
