"""Application-level exception types.

This module defines domain errors used across adapters and the HTTP layer,
enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional; adapters fill only what they know.
    """

    code: str
    message: str
    hint: str
    phase: str
    address: str
    bucket_key: str
    http_status: int
    retry_after: float
    backend: str
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when request input validation fails."""


class ConfigurationAppError(AppError):
    """Raised when the counter cannot be built from its configuration.

    Covers malformed or unusable endpoint lists, unsupported backend choices
    and a backend that is unreachable at construction time.
    """


class BackendAppError(AppError):
    """Raised when a command against the counter backend fails.

    The phase (``increment``, ``expire`` or ``read``) is kept in ``details``
    so callers and logs can tell which step of a batch went wrong. After a
    failed increment the write may or may not have been applied.
    """

    @property
    def phase(self) -> str | None:
        return (self.details or {}).get("phase")
