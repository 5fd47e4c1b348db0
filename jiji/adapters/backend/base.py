from __future__ import annotations

from abc import ABC, abstractmethod

from jiji.schemas.records import ResourceRecord, UserIdentity


class BackendError(Exception):
	"""A collaborator call failed; ``str(error)`` is safe to show operators."""


class BackendTimeoutError(BackendError):
	"""A collaborator call did not complete in time."""


class AbstractIdentityProvider(ABC):
	"""Exchanges a bearer credential for a verified user."""

	@abstractmethod
	async def get_user(self, credential: str | None) -> UserIdentity | None:
		"""Resolve the Authorization header value to a user.

		Args:
			credential: Raw Authorization header (``"Bearer <jwt>"``) or None.

		Returns:
			The verified user, or None when the credential is not accepted.

		Raises:
			BackendError: If the provider could not be reached or answered badly.
		"""
		...


class AbstractRecordStore(ABC):
	"""Reads and writes profile, query-history and resource-catalog records.

	Every call receives the caller's credential so the store can apply its
	own row-level access rules.
	"""

	@abstractmethod
	async def upsert_profile(self, identity: UserIdentity, *, credential: str | None) -> None:
		"""Create the profile keyed by ``identity.id``; an existing row is left as is."""
		...

	@abstractmethod
	async def search_resources(
		self,
		query: str,
		*,
		limit: int,
		credential: str | None,
	) -> list[ResourceRecord]:
		"""Return up to ``limit`` resources whose title or description contains ``query``.

		Matching is case-insensitive; ordering is the store's own.
		"""
		...

	@abstractmethod
	async def insert_query(
		self,
		identity: UserIdentity,
		query_text: str,
		*,
		credential: str | None,
	) -> None:
		"""Append a query-history row for ``identity``."""
		...


class AbstractObjectStorage(ABC):
	"""Maps stored object paths to retrievable URLs."""

	@abstractmethod
	def public_url(self, storage_path: str) -> str:
		...


class AbstractBackend(AbstractIdentityProvider, AbstractRecordStore, AbstractObjectStorage):
	"""A collaborator offering identity, records and object storage together."""

	async def close(self) -> None:
		"""Release network resources. Default: nothing to release."""
		return None
