"""Factory for the process-wide collaborator backend."""

from __future__ import annotations

import logging

from jiji.adapters.backend.base import AbstractBackend
from jiji.adapters.backend.supabase import SupabaseBackend
from jiji.core.config import SupabaseSettings, settings

logger = logging.getLogger(__name__)

_backend: AbstractBackend | None = None
_backend_built = False


def create_backend(supabase_settings: SupabaseSettings) -> AbstractBackend | None:
    """Build a backend from settings.

    Returns:
        A SupabaseBackend, or None when the URL or anon key is missing.
    """
    if not supabase_settings.is_configured:
        return None
    return SupabaseBackend(
        url=supabase_settings.url,  # type: ignore[arg-type]
        anon_key=supabase_settings.anon_key,  # type: ignore[arg-type]
        storage_bucket=supabase_settings.storage_bucket,
        timeout_seconds=supabase_settings.timeout_seconds,
    )


def get_backend() -> AbstractBackend | None:
    """Return the process-wide backend, building it on first use.

    Called on every ask request so a missing configuration is reported per
    request instead of preventing startup. The result (including None) is
    kept until ``close_backend`` runs.
    """
    global _backend, _backend_built

    if not _backend_built:
        _backend = create_backend(settings.supabase)
        _backend_built = True
    return _backend


async def close_backend() -> None:
    """Close the cached backend's HTTP client and forget it."""
    global _backend, _backend_built

    backend, _backend, _backend_built = _backend, None, False
    if backend is not None:
        await backend.close()


def warn_if_unconfigured() -> None:
    if not settings.supabase.is_configured:
        logger.warning(
            "backend.unconfigured",
            extra={
                "hint": "Set SUPABASE_URL and SUPABASE_ANON_KEY to enable database access",
            },
        )
