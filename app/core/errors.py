"""Application-level exception types.

This module defines domain errors raised by the store, the validators and the
pipeline stages, enabling consistent error handling, logging, and API
responses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients.

    Fields are optional to keep shapes flexible while encouraging
    consistent keys across the codebase.
    """

    hint: str
    user_id: int
    email: str
    limit: int
    retry_after: int
    request_id: str
    context: NotRequired[dict[str, Any]]


class FieldError(TypedDict):
    """A single field-level validation failure."""

    field: str
    message: str


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
    """Raised when input is malformed or required data is missing (bad request)."""


@dataclass
class FieldValidationAppError(ValidationAppError):
    """Raised when one or more field rules fail before reaching the store."""

    errors: list[FieldError] = field(default_factory=list)


class AuthenticationAppError(AppError):
    """Raised when the access gate rejects a request."""


class NotFoundAppError(AppError):
    """Raised when a requested resource does not exist."""


class ConflictAppError(AppError):
    """Raised when a mutation would break a uniqueness invariant."""


@dataclass
class RateLimitAppError(AppError):
    """Raised when a client exceeds its request budget."""

    headers: dict[str, str] = field(default_factory=dict)
