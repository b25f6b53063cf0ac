"""
Error taxonomy for resolution, fetching, and binding writes.

Every failure raised by the tool carries a stable code so it can be
reported per item or surfaced as a fatal error.
"""

from __future__ import annotations

import socket
from collections.abc import Mapping
from enum import Enum
from typing import Any

import httpx


class ErrorCode(str, Enum):
    """Stable error identifiers used in reports."""

    NOT_FOUND = "not_found"
    INVALID_MANIFEST = "invalid_manifest"
    NETWORK = "network"
    TIMEOUT = "timeout"
    CHECKSUM_MISMATCH = "checksum_mismatch"
    CONFLICT = "conflict"
    IO = "io"
    VALIDATION = "validation"
    CANCELLED = "cancelled"


class BindingToolError(Exception):
    """Base error carrying a code, an optional hint, and context."""

    code: ErrorCode = ErrorCode.VALIDATION

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [self.message]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for key, value in self.context.items():
            if value is not None and value != "":
                parts.append(f"  {key}: {value}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for reports."""
        payload: dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
            "context": {k: str(v) for k, v in self.context.items()},
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class NotFoundError(BindingToolError):
    """A reference, release, tag, or file does not exist."""

    code = ErrorCode.NOT_FOUND


class InvalidManifestError(BindingToolError):
    """A manifest could not be decoded or contains invalid entries."""

    code = ErrorCode.INVALID_MANIFEST


class NetworkError(BindingToolError):
    """Transport, DNS, TLS, or HTTP status failure."""

    code = ErrorCode.NETWORK


class FetchTimeoutError(BindingToolError):
    """Connect, read, or whole-request budget exceeded."""

    code = ErrorCode.TIMEOUT


class ChecksumMismatchError(BindingToolError):
    """Downloaded content does not match the declared checksum."""

    code = ErrorCode.CHECKSUM_MISMATCH


class ConflictError(BindingToolError):
    """An existing binding entry disagrees with the new value."""

    code = ErrorCode.CONFLICT


class LocalIOError(BindingToolError):
    """Local filesystem failure."""

    code = ErrorCode.IO


class ValidationError(BindingToolError):
    """Invalid user input or configuration."""

    code = ErrorCode.VALIDATION


class CancelledError(BindingToolError):
    """The operation was cancelled before it completed."""

    code = ErrorCode.CANCELLED


def categorize_error(error: BaseException) -> ErrorCode:
    """
    Categorize an exception for reporting.

    Args:
        error: The exception to categorize.

    Returns:
        Error code.
    """
    if isinstance(error, BindingToolError):
        return error.code

    if isinstance(error, (httpx.TimeoutException, TimeoutError, socket.timeout)):
        return ErrorCode.TIMEOUT

    if isinstance(error, (httpx.TransportError, httpx.HTTPStatusError, ConnectionError)):
        return ErrorCode.NETWORK

    if isinstance(error, FileNotFoundError):
        return ErrorCode.NOT_FOUND

    if isinstance(error, OSError):
        return ErrorCode.IO

    return ErrorCode.VALIDATION


def wrap_error(error: BaseException, message: str, **context: Any) -> BindingToolError:
    """
    Convert a library exception into the matching BindingToolError.

    Args:
        error: Original exception.
        message: Message prefix describing the failed operation.
        **context: Extra context for the report.

    Returns:
        BindingToolError subclass instance for the categorized code.
    """
    if isinstance(error, BindingToolError):
        return error

    error_cls = _ERROR_CLASSES[categorize_error(error)]
    return error_cls(f"{message}: {error}", context=context)


_ERROR_CLASSES: dict[ErrorCode, type[BindingToolError]] = {
    ErrorCode.NOT_FOUND: NotFoundError,
    ErrorCode.INVALID_MANIFEST: InvalidManifestError,
    ErrorCode.NETWORK: NetworkError,
    ErrorCode.TIMEOUT: FetchTimeoutError,
    ErrorCode.CHECKSUM_MISMATCH: ChecksumMismatchError,
    ErrorCode.CONFLICT: ConflictError,
    ErrorCode.IO: LocalIOError,
    ErrorCode.VALIDATION: ValidationError,
    ErrorCode.CANCELLED: CancelledError,
}
