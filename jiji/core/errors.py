"""Application-level exception types.

Every terminal outcome of the ask pipeline is one of these errors. The
exception handlers translate them into an HTTP status plus a
``{"error": ..., "details"?: ...}`` body.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code (logged, not returned).
        message: Human-readable error message returned to the client.
        details: Optional collaborator detail. Only upstream failures set it.
        headers: Optional extra response headers (e.g., Retry-After).
    """

    code: str
    message: str
    details: str | None = None
    headers: dict[str, str] | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class RateLimitedError(AppError):
    """Raised when a client exceeds its request budget."""


class QueryValidationReason(str, Enum):
    NOT_A_STRING = "not_a_string"
    TOO_SHORT = "too_short"
    TOO_LONG = "too_long"


class InvalidQueryError(AppError):
    """Raised when the query fails shape/length validation."""

    def __init__(self, reason: QueryValidationReason, message: str) -> None:
        super().__init__(code=f"query_{reason.value}", message=message)
        self.reason = reason


class PayloadTooLargeError(AppError):
    """Raised when the request body exceeds the configured size."""


class ServerMisconfiguredError(AppError):
    """Raised when collaborator credentials are missing at request time."""


class UnauthorizedError(AppError):
    """Raised when the caller's credential does not resolve to a user."""


class UpstreamAppError(AppError):
    """Base for failures of an external collaborator (500-class)."""


class ProfileSyncError(UpstreamAppError):
    """Raised when the profile upsert fails."""


class ResourceFetchError(UpstreamAppError):
    """Raised when the resource catalog search fails."""


class QueryLogError(UpstreamAppError):
    """Raised when persisting the query history entry fails."""


class UpstreamTimeoutError(UpstreamAppError):
    """Raised when a collaborator call exceeds its time budget."""
