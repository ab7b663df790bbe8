"""Application-level exception types.

Each error carries a stable machine-readable code and maps to one HTTP
status, so handlers and routes share a single taxonomy.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    field: str
    fields: list[str]
    retry_after: int
    policy: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for clients.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    status_code: ClassVar[int] = 400

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str] | None:
        return None


class ValidationAppError(AppError):
    """Raised when request payload validation fails."""


class CSRFAppError(AppError):
    """Raised when a state-changing request fails CSRF verification."""

    status_code: ClassVar[int] = 403


@dataclass
class RateLimitAppError(AppError):
    """Raised when a client exceeds its request budget.

    Attributes:
        retry_after: Seconds until the current window resets.
        response_headers: X-RateLimit-* and Retry-After headers to return.
    """

    retry_after: int = 0
    response_headers: dict[str, str] = field(default_factory=dict)

    status_code: ClassVar[int] = 429

    @property
    def headers(self) -> dict[str, str] | None:
        return self.response_headers or None


class ServiceUnavailableAppError(AppError):
    """Raised when a downstream collaborator is not available."""

    status_code: ClassVar[int] = 503


class ConfigurationAppError(AppError):
    """Raised at startup when configuration is unsafe or incomplete."""

    status_code: ClassVar[int] = 500
