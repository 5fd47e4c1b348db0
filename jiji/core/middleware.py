"""HTTP middleware for request correlation, access logging and hardening headers.

The request id middleware:
- Generates a fresh UUID4 for every request (client-supplied ids are ignored)
- Stores it in contextvars so services and log records can read it
- Returns it in the ``X-Request-Id`` header on success *and* failure
- Measures total request duration and logs one access line per request

Usage (the last registered middleware runs outermost):
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(security_headers_middleware)
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request, Response

from jiji.core.config import settings
from jiji.core.exception_handlers import general_exception_handler
from jiji.core.logging import reset_request_id, set_request_id

logger = logging.getLogger(__name__)

SECURITY_HEADERS: dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Resource-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}


async def request_id_middleware(request: Request, call_next) -> Response:
    """Assign a request id, time the request and emit an access log line.

    Unhandled exceptions are rendered here rather than in Starlette's
    outermost error middleware so the 500 response still carries the
    request id header.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response with ``X-Request-Id`` and ``X-Request-Duration-ms`` headers.
    """
    header_name = settings.log.request_id_header
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    token = set_request_id(request_id)
    start = time.perf_counter()
    try:
        try:
            response: Response = await call_next(request)
        except Exception as exc:  # noqa: BLE001 - rendered as a generic 500
            response = await general_exception_handler(request, exc)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers[header_name] = request_id
        response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
        logger.info(
            "request.completed",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": round(duration_ms, 2),
            },
        )
        return response
    finally:
        reset_request_id(token)


async def security_headers_middleware(request: Request, call_next) -> Response:
    """Add conservative hardening headers to every response."""
    response: Response = await call_next(request)
    if settings.app.security_headers_enabled:
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
    return response
