"""Ask pipeline orchestration.

This service sequences one ask request end to end:
- Rate check per client address
- Query validation
- Lazy configuration check (collaborator credentials present?)
- Caller authentication
- Concurrent profile upsert and resource search
- Query history write
- Response assembly

Every failure is terminal and surfaces once as an AppError; nothing is
retried and no partial response is ever returned.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

from jiji.adapters.backend.base import AbstractBackend, BackendTimeoutError
from jiji.adapters.backend.factory import get_backend
from jiji.adapters.rate_limit.base import AbstractRateLimiter
from jiji.core.auth import IdentityResolver
from jiji.core.config import AppSettings
from jiji.core.errors import (
    ProfileSyncError,
    QueryLogError,
    RateLimitedError,
    ResourceFetchError,
    ServerMisconfiguredError,
    UpstreamAppError,
    UpstreamTimeoutError,
)
from jiji.core.query_validation import validate_query
from jiji.core.rate_limit import build_rate_limiter, hash_client_key, rate_limit_headers
from jiji.schemas.ask import AskResponse
from jiji.schemas.records import ResourceRecord, UserIdentity
from jiji.services.response_assembler import assemble_response

logger = logging.getLogger(__name__)

T = TypeVar("T")

BackendProvider = Callable[[], "AbstractBackend | None"]


class AskService:
    """Orchestrates the ask pipeline and owns its partial-failure policy.

    Attributes:
        rate_limiter: Per-client limiter, or None when rate limiting is off.
        backend_provider: Returns the collaborator backend, or None when it
            is not configured. Called on every request.
    """

    def __init__(
        self,
        *,
        rate_limiter: AbstractRateLimiter | None,
        backend_provider: BackendProvider,
        query_min_chars: int = 3,
        query_max_chars: int = 500,
        search_limit: int = 5,
        timeout_seconds: float | None = 10.0,
        include_rate_limit_headers: bool = True,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.backend_provider = backend_provider
        self.query_min_chars = query_min_chars
        self.query_max_chars = query_max_chars
        self.search_limit = search_limit
        self.timeout_seconds = timeout_seconds
        self.include_rate_limit_headers = include_rate_limit_headers

    @classmethod
    def from_settings(
        cls,
        app_settings: AppSettings,
        *,
        backend_provider: BackendProvider = get_backend,
    ) -> "AskService":
        return cls(
            rate_limiter=build_rate_limiter(app_settings),
            backend_provider=backend_provider,
            query_min_chars=app_settings.query_min_chars,
            query_max_chars=app_settings.query_max_chars,
            search_limit=app_settings.resource_search_limit,
            timeout_seconds=app_settings.upstream_timeout_seconds,
            include_rate_limit_headers=app_settings.rate_limit_include_headers,
        )

    def check_rate_limit(self, client_key: str | None) -> None:
        """Record the request against the client's window.

        Args:
            client_key: Client address; None skips limiting.

        Raises:
            RateLimitedError: When the client exceeded its budget.
        """
        if self.rate_limiter is None or not client_key:
            return

        result = self.rate_limiter.consume(client_key)
        if result.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={"key_hash": hash_client_key(client_key), "remaining": result.remaining},
            )
            return

        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": hash_client_key(client_key),
                "limit": result.limit,
                "retry_after_s": result.retry_after_seconds,
            },
        )
        raise RateLimitedError(
            code="rate_limited",
            message="Too many requests. Please retry later.",
            headers=rate_limit_headers(result) if self.include_rate_limit_headers else None,
        )

    def _require_backend(self) -> AbstractBackend:
        backend = self.backend_provider()
        if backend is None:
            logger.error("ask.backend_unconfigured")
            raise ServerMisconfiguredError(
                code="server_misconfigured",
                message="Server misconfiguration. Missing Supabase environment variables.",
            )
        return backend

    async def _bounded(self, awaitable: Awaitable[T]) -> T:
        return await asyncio.wait_for(awaitable, timeout=self.timeout_seconds)

    def _to_app_error(
        self,
        exc: BaseException,
        error_cls: type[UpstreamAppError],
        code: str,
        message: str,
        operation: str,
    ) -> UpstreamAppError:
        """Translate a collaborator exception into the step's domain error."""
        if isinstance(exc, (asyncio.TimeoutError, BackendTimeoutError)):
            logger.error("ask.upstream_timeout", extra={"operation": operation})
            return UpstreamTimeoutError(
                code="upstream_timeout",
                message="Upstream service timed out.",
                details=f"{operation} timed out",
            )

        logger.error(
            f"ask.{code}",
            extra={"operation": operation, "error_type": type(exc).__name__, "error_msg": str(exc)},
        )
        return error_cls(code=code, message=message, details=str(exc) or type(exc).__name__)

    async def _sync_and_search(
        self,
        backend: AbstractBackend,
        identity: UserIdentity,
        query: str,
        credential: str | None,
    ) -> list[ResourceRecord]:
        """Run the profile upsert and resource search concurrently.

        Both calls run to completion. A profile failure takes precedence and
        discards the search result.
        """
        profile_outcome, search_outcome = await asyncio.gather(
            self._bounded(backend.upsert_profile(identity, credential=credential)),
            self._bounded(
                backend.search_resources(query, limit=self.search_limit, credential=credential)
            ),
            return_exceptions=True,
        )

        for outcome in (profile_outcome, search_outcome):
            # Cancellation and interpreter exits are not collaborator failures
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome

        if isinstance(profile_outcome, Exception):
            raise self._to_app_error(
                profile_outcome,
                ProfileSyncError,
                "profile_sync_failed",
                "Failed to sync profile.",
                "profile_sync",
            ) from profile_outcome

        if isinstance(search_outcome, Exception):
            raise self._to_app_error(
                search_outcome,
                ResourceFetchError,
                "resource_fetch_failed",
                "Failed to fetch resources.",
                "resource_search",
            ) from search_outcome

        return list(search_outcome or [])[: self.search_limit]

    async def _log_query(
        self,
        backend: AbstractBackend,
        identity: UserIdentity,
        query: str,
        credential: str | None,
    ) -> None:
        try:
            await self._bounded(backend.insert_query(identity, query, credential=credential))
        except Exception as exc:
            raise self._to_app_error(
                exc,
                QueryLogError,
                "query_log_failed",
                "Failed to save query.",
                "query_log",
            ) from exc

    async def ask(
        self,
        raw_query: Any,
        *,
        authorization: str | None,
        request_id: str,
    ) -> AskResponse:
        """Answer one query.

        The rate check runs earlier, at the HTTP edge, via ``check_rate_limit``.

        Args:
            raw_query: Untrusted ``query`` value from the request body.
            authorization: Raw Authorization header, or None.
            request_id: Correlation id echoed in the response.

        Returns:
            AskResponse with the templated answer and up to ``search_limit``
            resources.

        Raises:
            InvalidQueryError, ServerMisconfiguredError, UnauthorizedError,
            ProfileSyncError, ResourceFetchError, QueryLogError,
            UpstreamTimeoutError: One per failed step, first failure wins.
        """
        query = validate_query(
            raw_query,
            min_chars=self.query_min_chars,
            max_chars=self.query_max_chars,
        )

        backend = self._require_backend()

        identity = await IdentityResolver(
            backend, timeout_seconds=self.timeout_seconds
        ).resolve(authorization)

        resources = await self._sync_and_search(backend, identity, query, authorization)

        await self._log_query(backend, identity, query, authorization)

        response = assemble_response(query, request_id, resources, backend)
        logger.info(
            "ask.completed",
            extra={
                "user_id": identity.id,
                "query_length": len(query),
                "resource_count": len(response.resources),
            },
        )
        return response
