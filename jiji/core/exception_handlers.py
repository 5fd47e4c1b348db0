"""Global exception handlers for consistent error responses.

Design:
- AppError subclasses → mapped HTTP status (400, 401, 413, 429, 500, 504)
- Unexpected Exception → generic 500 (safety net)
- Body is always ``{"error": message}`` plus ``details`` for upstream failures
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from jiji.core.errors import (
    AppError,
    InvalidQueryError,
    PayloadTooLargeError,
    RateLimitedError,
    ServerMisconfiguredError,
    UnauthorizedError,
    UpstreamAppError,
    UpstreamTimeoutError,
)
from jiji.core.logging import get_request_id

logger = logging.getLogger(__name__)

# Checked in order; first isinstance match wins.
_STATUS_BY_ERROR: tuple[tuple[type[AppError], int], ...] = (
    (RateLimitedError, 429),
    (InvalidQueryError, 400),
    (PayloadTooLargeError, 413),
    (UnauthorizedError, 401),
    (ServerMisconfiguredError, 500),
    (UpstreamTimeoutError, 504),
    (UpstreamAppError, 500),
)


def status_code_for(exc: AppError) -> int:
    """Return the HTTP status for a domain error (400 when unmapped)."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 400


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    ``details`` is included only for upstream collaborator failures so that
    validation and auth responses never leak internal state.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with the mapped status code and error body.
    """
    status_code = status_code_for(exc)
    include_details = isinstance(exc, UpstreamAppError) and bool(exc.details)

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "status_code": status_code,
            "has_details": include_details,
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    content: dict[str, str] = {"error": exc.message}
    if include_details:
        content["details"] = exc.details  # type: ignore[assignment]

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=exc.headers or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs the exception type for operators and returns a generic message.
    No stack traces or exception text reach the client.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error."},
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app.

    Example:
        >>> from fastapi import FastAPI
        >>> app = FastAPI()
        >>> setup_exception_handlers(app)
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
