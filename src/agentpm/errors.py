# src/agentpm/errors.py

"""
Error taxonomy shared by every component.

Each error carries a stable ErrorCode so outer layers (protocol adapters,
the console) can map failures without string matching.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    OPERATION_NOT_PERMITTED = "OPERATION_NOT_PERMITTED"

    # Task graph
    CIRCULAR_DEPENDENCY = "CIRCULAR_DEPENDENCY"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"

    # Transactions
    TRANSACTION_IN_PROGRESS = "TRANSACTION_IN_PROGRESS"
    NO_TRANSACTION = "NO_TRANSACTION"

    # Persistence
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    FILE_READ_ERROR = "FILE_READ_ERROR"
    FILE_WRITE_ERROR = "FILE_WRITE_ERROR"
    BACKUP_ERROR = "BACKUP_ERROR"
    PARSING_ERROR = "PARSING_ERROR"


class AppError(Exception):
    """Base class for every error raised by agentpm."""

    default_code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": type(self).__name__,
            "message": self.message,
            "code": self.code.value,
            "details": self.details,
        }


class ValidationError(AppError):
    default_code = ErrorCode.VALIDATION_ERROR


class NotFoundError(AppError):
    default_code = ErrorCode.NOT_FOUND


class AlreadyExistsError(AppError):
    default_code = ErrorCode.ALREADY_EXISTS


class OperationNotPermittedError(AppError):
    default_code = ErrorCode.OPERATION_NOT_PERMITTED


class CircularDependencyError(AppError):
    default_code = ErrorCode.CIRCULAR_DEPENDENCY


class InvalidStatusTransitionError(AppError):
    default_code = ErrorCode.INVALID_STATUS_TRANSITION


class TransactionInProgressError(AppError):
    default_code = ErrorCode.TRANSACTION_IN_PROGRESS


class NoTransactionError(AppError):
    default_code = ErrorCode.NO_TRANSACTION


class FileSystemError(AppError):
    """Persistence failure surfaced unchanged from the file gateway."""

    default_code = ErrorCode.FILE_READ_ERROR


class FileReadError(FileSystemError):
    default_code = ErrorCode.FILE_READ_ERROR


class FileWriteError(FileSystemError):
    default_code = ErrorCode.FILE_WRITE_ERROR


class BackupError(FileSystemError):
    default_code = ErrorCode.BACKUP_ERROR
