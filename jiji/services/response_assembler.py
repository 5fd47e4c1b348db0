"""Builds the public ask response from catalog records."""

from __future__ import annotations

from typing import Iterable

from jiji.adapters.backend.base import AbstractObjectStorage
from jiji.schemas.ask import AskResponse, ResourceLink
from jiji.schemas.records import ResourceRecord


def build_answer(query: str) -> str:
    """Render the fixed answer template around the trimmed query."""
    return (
        f'Here\'s a quick overview for: "{query}". '
        "Review the resources below for deeper learning."
    )


def to_resource_link(record: ResourceRecord, storage: AbstractObjectStorage) -> ResourceLink:
    return ResourceLink(
        id=record.id,
        title=record.title,
        description=record.description,
        type=record.type,
        url=storage.public_url(record.storage_path),
    )


def assemble_response(
    query: str,
    request_id: str,
    resources: Iterable[ResourceRecord],
    storage: AbstractObjectStorage,
) -> AskResponse:
    """Project catalog records into the response payload.

    Args:
        query: Trimmed query text, embedded verbatim in the answer.
        request_id: Correlation id, echoed as ``requestId``.
        resources: Records returned by the catalog search, in catalog order.
        storage: Resolves each record's storage path to a public URL.

    Returns:
        AskResponse with one ResourceLink per record.
    """
    return AskResponse(
        request_id=request_id,
        answer=build_answer(query),
        resources=[to_resource_link(record, storage) for record in resources],
    )
