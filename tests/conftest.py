"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any ``jiji`` import so the global
settings object is built with test values.
"""

import asyncio
import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("SUPABASE_URL", "https://project.supabase.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "anon-test-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402

from jiji.adapters.backend.base import AbstractBackend  # noqa: E402
from jiji.adapters.rate_limit.in_memory import InMemoryWindowRateLimiter  # noqa: E402
from jiji.schemas.records import ResourceRecord, UserIdentity  # noqa: E402
from jiji.services.ask_service import AskService  # noqa: E402

VALID_TOKEN = "Bearer valid-token"
PUBLIC_BASE = "https://cdn.test/learning-resources"


class FakeBackend(AbstractBackend):
    """In-memory collaborator with failure injection and call recording."""

    def __init__(self) -> None:
        self.users: dict[str, UserIdentity] = {
            VALID_TOKEN: UserIdentity(id="user-1", full_name="Ada Lovelace"),
        }
        self.resources: list[ResourceRecord] = [
            ResourceRecord(
                id="r1",
                title="RAG 101 Deck",
                description="Introductory slides covering retrieval augmented generation.",
                type="ppt",
                storage_path="rag-101.pptx",
            ),
            ResourceRecord(
                id="r2",
                title="RAG Walkthrough Video",
                description="Short recorded session on RAG basics and concepts.",
                type="video",
                storage_path="videos/rag-walkthrough.mp4",
            ),
            ResourceRecord(
                id="r3",
                title="Prompt Engineering",
                description=None,
                type="ppt",
                storage_path="prompting.pptx",
            ),
        ]
        self.profiles: dict[str, UserIdentity] = {}
        self.queries: list[tuple[str, str]] = []
        self.calls: list[str] = []
        self.credentials_seen: list[str | None] = []

        self.auth_error: Exception | None = None
        self.profile_error: Exception | None = None
        self.search_error: Exception | None = None
        self.insert_error: Exception | None = None
        self.delays: dict[str, float] = {}

    async def _enter(self, operation: str, credential: str | None) -> None:
        self.calls.append(operation)
        self.credentials_seen.append(credential)
        delay = self.delays.get(operation)
        if delay:
            await asyncio.sleep(delay)

    async def get_user(self, credential):
        await self._enter("get_user", credential)
        if self.auth_error is not None:
            raise self.auth_error
        return self.users.get(credential or "")

    async def upsert_profile(self, identity, *, credential):
        await self._enter("upsert_profile", credential)
        if self.profile_error is not None:
            raise self.profile_error
        self.profiles.setdefault(identity.id, identity)

    async def search_resources(self, query, *, limit, credential):
        await self._enter("search_resources", credential)
        if self.search_error is not None:
            raise self.search_error
        needle = query.lower()
        matches = [
            r
            for r in self.resources
            if needle in r.title.lower() or needle in (r.description or "").lower()
        ]
        return matches[:limit]

    async def insert_query(self, identity, query_text, *, credential):
        await self._enter("insert_query", credential)
        if self.insert_error is not None:
            raise self.insert_error
        self.queries.append((identity.id, query_text))

    def public_url(self, storage_path):
        return f"{PUBLIC_BASE}/{storage_path}"


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def ask_service(fake_backend: FakeBackend) -> AskService:
    """AskService wired to the fake backend with default limits."""
    return AskService(
        rate_limiter=InMemoryWindowRateLimiter(limit=30, window_seconds=60),
        backend_provider=lambda: fake_backend,
        timeout_seconds=1.0,
    )


@pytest.fixture
def auth_headers() -> dict[str, str]:
    return {"Authorization": VALID_TOKEN}
