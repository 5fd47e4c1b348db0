"""Collaborator adapters - identity, record store and object storage."""

from jiji.adapters.backend.base import (
    AbstractBackend,
    AbstractIdentityProvider,
    AbstractObjectStorage,
    AbstractRecordStore,
    BackendError,
    BackendTimeoutError,
)
from jiji.adapters.backend.factory import close_backend, create_backend, get_backend
from jiji.adapters.backend.supabase import SupabaseBackend

__all__ = [
    "AbstractBackend",
    "AbstractIdentityProvider",
    "AbstractObjectStorage",
    "AbstractRecordStore",
    "BackendError",
    "BackendTimeoutError",
    "SupabaseBackend",
    "close_backend",
    "create_backend",
    "get_backend",
]
