"""Application-level exception types.

Errors raised by the decision engine, the counting stores and the
configuration layer. HTTP handlers map each family to a status code so
operators can tell "client exceeded limit" from "backend failed".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    code: str
    message: str
    hint: str
    step: str
    key_hash: str
    backend: str
    field: str
    timeout_seconds: float
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
    """Raised when request input is unusable (e.g. empty identifier)."""


class ConfigurationAppError(AppError):
    """Raised when limits, durations or backend settings are invalid."""


class StoreAppError(AppError):
    """Base class for counting store failures."""


class StoreUnavailableError(StoreAppError):
    """The store could not be reached (connection loss, timeout, transport)."""


class StoreInconsistentResultError(StoreAppError):
    """The store answered with a value of unexpected shape or type."""


class IdentityUnavailableError(AppError):
    """Raised when a request carries neither a credential nor a client address."""
