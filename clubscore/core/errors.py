"""Application-level exception types.

This module defines the error family shared by the edge primitives, the
boundary middleware and the admin routes, enabling consistent error
handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep backward compatibility while encouraging
    consistent shapes across the codebase.
    """

    code: str
    message: str
    hint: str
    field: str
    min_value: int
    actual_value: Any
    http_status: int
    retry_after: int
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


class AuthenticationAppError(AppError):
    """Raised when authentication/authorization fails."""


class ConfigurationAppError(AppError):
    """Raised when a cache, limiter or sweeper is set up with invalid values."""


def require_positive(field: str, value: float | int | None) -> None:
    """Fail fast when a numeric setting is missing or not strictly positive.

    Args:
        field: Name of the setting, reported back in the error details.
        value: Value supplied by the caller.

    Raises:
        ConfigurationAppError: If value is None or <= 0.
    """

    if value is None or value <= 0:
        raise ConfigurationAppError(
            code="invalid_configuration",
            message=f"{field} must be a positive number",
            details={"field": field, "min_value": 1, "actual_value": value},
        )
