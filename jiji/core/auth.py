"""Caller authentication against the identity provider.

The Authorization header is forwarded verbatim to the provider. Missing,
malformed and rejected credentials all surface as the same 401 response;
only the log line records which case occurred.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging

from jiji.adapters.backend.base import (
    AbstractIdentityProvider,
    BackendError,
    BackendTimeoutError,
)
from jiji.core.errors import UnauthorizedError, UpstreamTimeoutError
from jiji.schemas.records import UserIdentity

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "Unauthorized. Provide a valid Supabase JWT in the Authorization header."


def _credential_fingerprint(credential: str) -> str:
    """Short hash for correlating auth failures without logging the token."""
    return hashlib.sha256(credential.encode()).hexdigest()[:16]


def _unauthorized() -> UnauthorizedError:
    return UnauthorizedError(code="unauthorized", message=UNAUTHORIZED_MESSAGE)


class IdentityResolver:
    """Resolves an Authorization header to a verified ``UserIdentity``."""

    def __init__(
        self,
        provider: AbstractIdentityProvider,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self.provider = provider
        self.timeout_seconds = timeout_seconds

    async def resolve(self, authorization: str | None) -> UserIdentity:
        """Verify the caller.

        Args:
            authorization: Raw Authorization header value, or None if absent.

        Returns:
            The verified user identity.

        Raises:
            UnauthorizedError: If the provider reports no user or an error.
            UpstreamTimeoutError: If the provider does not answer in time.
        """
        try:
            user = await asyncio.wait_for(
                self.provider.get_user(authorization),
                timeout=self.timeout_seconds,
            )
        except (asyncio.TimeoutError, BackendTimeoutError) as exc:
            logger.error("auth.timeout", extra={"timeout_s": self.timeout_seconds})
            raise UpstreamTimeoutError(
                code="upstream_timeout",
                message="Upstream service timed out.",
                details="identity resolution timed out",
            ) from exc
        except Exception as exc:  # noqa: BLE001 - any provider failure is a 401
            logger.warning(
                "auth.rejected",
                extra={
                    "reason": "provider_error",
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                    "backend_error": isinstance(exc, BackendError),
                },
            )
            raise _unauthorized() from exc

        if user is None:
            logger.warning(
                "auth.rejected",
                extra={
                    "reason": "no_user" if authorization else "missing_credential",
                    "credential_hash": (
                        _credential_fingerprint(authorization) if authorization else None
                    ),
                },
            )
            raise _unauthorized()

        logger.info("auth.success", extra={"user_id": user.id})
        return user
