"""Pydantic schemas for the ask endpoint."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from jiji.schemas.records import ResourceType


class AskRequest(BaseModel):
    """Documented request body.

    The route reads the raw body itself so malformed input is reported with
    the same error shape as every other failure; this model feeds OpenAPI.
    """

    query: str = Field(
        ...,
        description="Free-text question, 3 to 500 characters after trimming.",
        examples=["RAG basics"],
    )


class ResourceLink(BaseModel):
    """A catalog resource with its storage path resolved to a public URL."""

    id: str
    title: str
    description: str | None = None
    type: ResourceType
    url: str = Field(..., description="Publicly retrievable URL of the resource file.")


class AskResponse(BaseModel):
    """Successful answer payload."""

    model_config = ConfigDict(populate_by_name=True)

    request_id: str = Field(
        ...,
        alias="requestId",
        description="Same value as the X-Request-Id response header.",
    )
    answer: str = Field(..., description="Templated answer embedding the trimmed query.")
    resources: list[ResourceLink] = Field(
        default_factory=list,
        description="Up to five related resources.",
    )


class ErrorResponse(BaseModel):
    """Failure payload shared by every non-2xx response."""

    error: str
    details: str | None = Field(
        default=None,
        description="Collaborator detail; present only for upstream failures.",
    )
