"""Supabase backend over its REST APIs.

Talks to three Supabase services with one ``httpx.AsyncClient``:
- GoTrue (``/auth/v1/user``) for identity resolution
- PostgREST (``/rest/v1/...``) for profiles, queries and the resource catalog
- Storage public object URLs, built locally without a network call
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from jiji.adapters.backend.base import AbstractBackend, BackendError, BackendTimeoutError
from jiji.schemas.records import ResourceRecord, UserIdentity

logger = logging.getLogger(__name__)

RESOURCE_COLUMNS = "id,title,description,type,storage_path"


def _quote_filter_value(value: str) -> str:
    """Quote a value for a PostgREST logic-tree filter.

    Commas, parentheses and dots are filter syntax; double quotes make them
    literal. Backslashes and quotes inside are escaped.
    """
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def build_resource_search_filter(query: str) -> str:
    """Build the ``or`` filter matching title or description case-insensitively."""
    pattern = _quote_filter_value(f"*{query}*")
    return f"(title.ilike.{pattern},description.ilike.{pattern})"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error"):
            if isinstance(body.get(key), str) and body[key]:
                return body[key]
    return f"HTTP {response.status_code}"


class SupabaseBackend(AbstractBackend):
    """Identity, record store and object storage backed by one Supabase project."""

    def __init__(
        self,
        *,
        url: str,
        anon_key: str,
        storage_bucket: str = "learning-resources",
        timeout_seconds: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            url: Supabase project URL.
            anon_key: Public anon key, sent as ``apikey`` on every call.
            storage_bucket: Public bucket holding resource files.
            timeout_seconds: httpx timeout applied to every call.
            transport: Optional httpx transport (tests use ``MockTransport``).
        """
        self.base_url = url.rstrip("/")
        self._anon_key = anon_key
        self.storage_bucket = storage_bucket
        self.timeout = timeout_seconds
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _headers(self, credential: str | None) -> dict[str, str]:
        # Without a user token PostgREST runs as the anon role.
        return {
            "apikey": self._anon_key,
            "Authorization": credential or f"Bearer {self._anon_key}",
        }

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise BackendTimeoutError(f"{method} {path} timed out") from exc
        except httpx.HTTPError as exc:
            raise BackendError(f"{method} {path} failed: {exc}") from exc

    async def get_user(self, credential: str | None) -> UserIdentity | None:
        if not credential:
            return None

        response = await self._request("GET", "/auth/v1/user", headers=self._headers(credential))
        if response.status_code in (401, 403):
            return None
        if not response.is_success:
            raise BackendError(_error_message(response))

        body = response.json()
        user_id = body.get("id") if isinstance(body, dict) else None
        if not user_id:
            return None
        metadata = body.get("user_metadata") or {}
        return UserIdentity(id=str(user_id), full_name=metadata.get("full_name") or None)

    async def upsert_profile(self, identity: UserIdentity, *, credential: str | None) -> None:
        headers = self._headers(credential)
        headers["Prefer"] = "resolution=ignore-duplicates,return=minimal"
        response = await self._request(
            "POST",
            "/rest/v1/profiles",
            params={"on_conflict": "id"},
            json={"id": identity.id, "full_name": identity.full_name},
            headers=headers,
        )
        if not response.is_success:
            raise BackendError(_error_message(response))

    async def search_resources(
        self,
        query: str,
        *,
        limit: int,
        credential: str | None,
    ) -> list[ResourceRecord]:
        response = await self._request(
            "GET",
            "/rest/v1/resources",
            params={
                "select": RESOURCE_COLUMNS,
                "or": build_resource_search_filter(query),
                "limit": str(limit),
            },
            headers=self._headers(credential),
        )
        if not response.is_success:
            raise BackendError(_error_message(response))

        rows = response.json()
        if not isinstance(rows, list):
            raise BackendError("Unexpected resource search payload")
        try:
            return [ResourceRecord.model_validate(row) for row in rows[:limit]]
        except ValidationError as exc:
            logger.warning("supabase.invalid_resource_row", extra={"errors": exc.error_count()})
            raise BackendError("Resource catalog returned an invalid record") from exc

    async def insert_query(
        self,
        identity: UserIdentity,
        query_text: str,
        *,
        credential: str | None,
    ) -> None:
        headers = self._headers(credential)
        headers["Prefer"] = "return=minimal"
        response = await self._request(
            "POST",
            "/rest/v1/queries",
            json={"profile_id": identity.id, "query_text": query_text},
            headers=headers,
        )
        if not response.is_success:
            raise BackendError(_error_message(response))

    def public_url(self, storage_path: str) -> str:
        path = quote(storage_path.lstrip("/"), safe="/")
        return f"{self.base_url}/storage/v1/object/public/{self.storage_bucket}/{path}"
