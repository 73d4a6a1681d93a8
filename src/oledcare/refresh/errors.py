"""Exception classes for pixel refresh operations.

This module defines the error taxonomy used by the refresh engine. Every
failure inside the engine is converted into one of these types at the
operation boundary and delivered to listeners through ``on_error``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Category of a refresh engine failure."""

    VALIDATION = "validation"  # Settings out of range or malformed
    OPERATION = "operation"  # Renderer or collaborator call failed mid-run
    SCHEDULING = "scheduling"  # Timer installation failed


class PixelRefreshError(Exception):
    """Base error for the pixel refresh engine.

    Carries the error category and, when available, the underlying
    exception that caused it.
    """

    kind: ErrorKind = ErrorKind.OPERATION

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        """Initialize the exception.

        Args:
            message: Human-readable error message
            original_error: The original exception that was caught
        """
        super().__init__(f"[{self.kind.value}] {message}")
        self.message: str = message
        self.original_error: Exception | None = original_error


class ConfigValidationError(PixelRefreshError):
    """Raised (or reported) when a setting is out of range or malformed.

    These are always corrected locally; the engine never aborts on them.
    """

    kind = ErrorKind.VALIDATION

    def __init__(
        self,
        key: str,
        value: Any,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message or f"Invalid value for {key}: {value!r}", original_error)
        self.key: str = key
        self.value: Any = value


class OperationError(PixelRefreshError):
    """Raised when a renderer or collaborator call fails during a run."""

    kind = ErrorKind.OPERATION

    def __init__(
        self, operation: str, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message, original_error)
        self.operation: str = operation

    @classmethod
    def from_exception(cls, operation: str, exc: Exception) -> OperationError:
        """Wrap a collaborator exception.

        Args:
            operation: Name of the operation that failed
            exc: The exception raised by the collaborator

        Returns:
            OperationError describing the failure
        """
        return cls(operation, f"Pixel refresh operation failed: {operation} ({exc})", exc)


class SchedulingError(PixelRefreshError):
    """Raised when the scheduler cannot install its timer."""

    kind = ErrorKind.SCHEDULING
