"""Unit tests for query validation and body extraction."""

import json

import pytest

from jiji.core.errors import InvalidQueryError, PayloadTooLargeError, QueryValidationReason
from jiji.core.query_validation import (
    extract_query,
    is_json_content_type,
    read_body_limited,
    validate_query,
)


class TestValidateQuery:
    """Shape and length rules for the query string."""

    def test_trims_surrounding_whitespace(self) -> None:
        assert validate_query("  RAG basics  ") == "RAG basics"

    def test_inner_whitespace_and_characters_untouched(self) -> None:
        raw = "  what is   <b>RAG</b>; DROP TABLE?  "
        assert validate_query(raw) == "what is   <b>RAG</b>; DROP TABLE?"

    @pytest.mark.parametrize("raw", [None, 42, 3.5, ["RAG basics"], {"q": "RAG"}, True, ""])
    def test_non_string_or_empty_rejected(self, raw) -> None:
        with pytest.raises(InvalidQueryError) as exc_info:
            validate_query(raw)

        assert exc_info.value.reason is QueryValidationReason.NOT_A_STRING
        assert exc_info.value.message == "Query must be a non-empty string."

    @pytest.mark.parametrize("raw", ["ab", "   ab   ", "     "])
    def test_too_short_after_trim(self, raw: str) -> None:
        with pytest.raises(InvalidQueryError) as exc_info:
            validate_query(raw)

        assert exc_info.value.reason is QueryValidationReason.TOO_SHORT
        assert exc_info.value.message == "Query must be between 3 and 500 characters."

    def test_too_long_after_trim(self) -> None:
        with pytest.raises(InvalidQueryError) as exc_info:
            validate_query("x" * 501)

        assert exc_info.value.reason is QueryValidationReason.TOO_LONG
        assert exc_info.value.code == "query_too_long"

    @pytest.mark.parametrize("length", [3, 4, 499, 500])
    def test_boundaries_inclusive(self, length: int) -> None:
        assert len(validate_query("  " + "y" * length + "\n")) == length

    def test_custom_limits(self) -> None:
        with pytest.raises(InvalidQueryError) as exc_info:
            validate_query("abcdef", min_chars=1, max_chars=5)

        assert exc_info.value.message == "Query must be between 1 and 5 characters."

    @pytest.mark.parametrize("raw", ["  RAG basics  ", "\tx\n", "abc", "  a  b  "])
    def test_trim_is_idempotent(self, raw: str) -> None:
        once = raw.strip()
        assert once.strip() == once
        if 3 <= len(once) <= 500:
            assert validate_query(validate_query(raw)) == validate_query(raw)


class TestExtractQuery:
    """Pulling the query field out of raw request bodies."""

    def test_extracts_query_field(self) -> None:
        body = json.dumps({"query": "RAG basics", "extra": 1}).encode()
        assert extract_query(body) == "RAG basics"

    def test_non_string_value_passed_through_for_validation(self) -> None:
        assert extract_query(b'{"query": 12}') == 12

    @pytest.mark.parametrize("body", [b"", b"not json", b'["query"]', b'"RAG"', b"\xff\xfe"])
    def test_unusable_bodies_yield_none(self, body: bytes) -> None:
        assert extract_query(body) is None


class TestJsonContentType:
    """Which declared media types are decoded as JSON."""

    @pytest.mark.parametrize(
        "content_type",
        [
            "application/json",
            "application/json; charset=utf-8",
            "Application/JSON",
            "application/merge-patch+json",
        ],
    )
    def test_json_types_accepted(self, content_type: str) -> None:
        assert is_json_content_type(content_type)

    @pytest.mark.parametrize(
        "content_type",
        [
            None,
            "",
            "text/plain",
            "application/x-www-form-urlencoded",
            "multipart/form-data; boundary=x",
        ],
    )
    def test_other_types_rejected(self, content_type) -> None:
        assert not is_json_content_type(content_type)


class _StreamingRequest:
    """Minimal stand-in for a Starlette request that records bytes pulled."""

    def __init__(self, chunks: list[bytes], headers: dict[str, str] | None = None) -> None:
        self.headers = headers or {}
        self._chunks = chunks
        self.bytes_pulled = 0

    async def stream(self):
        for chunk in self._chunks:
            self.bytes_pulled += len(chunk)
            yield chunk


class TestReadBodyLimited:
    """Bounded body reads."""

    @pytest.mark.asyncio
    async def test_small_body_returned_whole(self) -> None:
        request = _StreamingRequest([b'{"query": ', b'"RAG basics"}'])

        body = await read_body_limited(request, max_bytes=1024)

        assert body == b'{"query": "RAG basics"}'

    @pytest.mark.asyncio
    async def test_body_exactly_at_limit_allowed(self) -> None:
        request = _StreamingRequest([b"x" * 512, b"x" * 512])

        assert len(await read_body_limited(request, max_bytes=1024)) == 1024

    @pytest.mark.asyncio
    async def test_declared_length_over_limit_rejected_without_reading(self) -> None:
        request = _StreamingRequest([b"x" * 4096], headers={"content-length": "5000000"})

        with pytest.raises(PayloadTooLargeError) as exc_info:
            await read_body_limited(request, max_bytes=1024)

        assert request.bytes_pulled == 0
        assert exc_info.value.message == "Request body too large. Maximum size: 1024 bytes."

    @pytest.mark.asyncio
    async def test_undeclared_stream_stops_after_first_chunk_over_limit(self) -> None:
        chunk_size = 8192
        max_bytes = 100 * 1024
        request = _StreamingRequest([b"x" * chunk_size] * 600)

        with pytest.raises(PayloadTooLargeError):
            await read_body_limited(request, max_bytes=max_bytes)

        assert request.bytes_pulled <= max_bytes + chunk_size

    @pytest.mark.asyncio
    async def test_understated_length_still_capped(self) -> None:
        request = _StreamingRequest([b"x" * 1000] * 10, headers={"content-length": "10"})

        with pytest.raises(PayloadTooLargeError):
            await read_body_limited(request, max_bytes=2048)

        assert request.bytes_pulled <= 2048 + 1000
