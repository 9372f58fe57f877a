"""Custom exception hierarchy for ferry storage objects."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Discriminant shared by every ferry error."""

    INVALID_ARGUMENT = "invalid_argument"
    NOT_FOUND = "not_found"
    OPERATION_FAILED = "operation_failed"


class StorageError(Exception):
    """Base exception for all ferry errors."""

    kind: ErrorKind = ErrorKind.OPERATION_FAILED


class InvalidArgumentError(StorageError, ValueError):
    """Raised for malformed names, bad destinations and similar caller mistakes."""

    kind = ErrorKind.INVALID_ARGUMENT


class ObjectDisposedError(InvalidArgumentError):
    """Raised when a disposed storage object is used again."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Storage object has been disposed: {path}")
        self.path = path


class StorageNotFoundError(StorageError, FileNotFoundError):
    """Raised when a source file or directory does not exist."""

    kind = ErrorKind.NOT_FOUND


class OperationFailedError(StorageError):
    """Raised on I/O, permission or platform failures.

    ``path`` is the path being written or removed when the failure happened
    and ``cause`` is the underlying exception (also chained as ``__cause__``).
    """

    kind = ErrorKind.OPERATION_FAILED

    def __init__(
        self, message: str, *, path: str | None = None, cause: BaseException | None = None
    ) -> None:
        super().__init__(message)
        self.path = path
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause


class CatalogError(StorageError):
    """Raised when a signature catalog cannot be loaded."""
