"""Query input validation for the ask endpoint."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import Request

from jiji.core.errors import InvalidQueryError, PayloadTooLargeError, QueryValidationReason

logger = logging.getLogger(__name__)

DEFAULT_MIN_CHARS = 3
DEFAULT_MAX_CHARS = 500


def validate_query(
    raw: Any,
    *,
    min_chars: int = DEFAULT_MIN_CHARS,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> str:
    """Validate and trim the raw ``query`` value from a request body.

    No normalization or escaping beyond trimming is applied; downstream
    stores are responsible for parameterizing the value safely.

    Args:
        raw: Value of the ``query`` field (any JSON type, or None if absent).
        min_chars: Minimum length after trimming (inclusive).
        max_chars: Maximum length after trimming (inclusive).

    Returns:
        The query with leading and trailing whitespace removed.

    Raises:
        InvalidQueryError: With reason NOT_A_STRING, TOO_SHORT or TOO_LONG.

    Examples:
        >>> validate_query("  RAG basics  ")
        'RAG basics'
    """
    if not raw or not isinstance(raw, str):
        raise InvalidQueryError(
            QueryValidationReason.NOT_A_STRING,
            "Query must be a non-empty string.",
        )

    trimmed = raw.strip()
    length = len(trimmed)

    if length < min_chars or length > max_chars:
        reason = (
            QueryValidationReason.TOO_SHORT
            if length < min_chars
            else QueryValidationReason.TOO_LONG
        )
        logger.info(
            "query_validation.rejected",
            extra={"reason": reason.value, "length": length},
        )
        raise InvalidQueryError(
            reason,
            f"Query must be between {min_chars} and {max_chars} characters.",
        )

    return trimmed


def _payload_too_large(max_bytes: int) -> PayloadTooLargeError:
    return PayloadTooLargeError(
        code="payload_too_large",
        message=f"Request body too large. Maximum size: {max_bytes} bytes.",
    )


def is_json_content_type(content_type: str | None) -> bool:
    """Return True for ``application/json`` and ``application/*+json`` media types."""
    if not content_type:
        return False
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or (
        media_type.startswith("application/") and media_type.endswith("+json")
    )


async def read_body_limited(request: Request, *, max_bytes: int) -> bytes:
    """Read the request body, refusing to buffer more than ``max_bytes``.

    The declared Content-Length is checked first; the stream is then read
    chunk by chunk and abandoned as soon as the running total passes the cap.

    Raises:
        PayloadTooLargeError: If the body exceeds ``max_bytes``.
    """
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        logger.warning(
            "query_validation.rejected_by_header",
            extra={"size": int(declared), "max_bytes": max_bytes},
        )
        raise _payload_too_large(max_bytes)

    size = 0
    chunks: list[bytes] = []
    async for chunk in request.stream():
        size += len(chunk)
        if size > max_bytes:
            logger.warning(
                "query_validation.rejected_by_chunked_read",
                extra={"size": size, "max_bytes": max_bytes},
            )
            raise _payload_too_large(max_bytes)
        chunks.append(chunk)

    return b"".join(chunks)


def extract_query(body: bytes) -> Any:
    """Pull the ``query`` field out of a raw JSON request body.

    Empty or undecodable bodies and non-object payloads yield None, which
    the validator then rejects as NOT_A_STRING.
    """
    if not body:
        return None

    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, ValueError):
        return None

    if not isinstance(payload, dict):
        return None
    return payload.get("query")
