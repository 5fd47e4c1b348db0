"""Records read from the external collaborators."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

ResourceType = Literal["ppt", "video"]


class UserIdentity(BaseModel):
    """Verified caller identity returned by the identity provider."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Stable user id (profile key).")
    full_name: str | None = Field(
        default=None,
        description="Display name from the user's metadata, if any.",
    )


class ResourceRecord(BaseModel):
    """Catalog entry as stored in the resources table."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    title: str
    description: str | None = None
    type: ResourceType
    storage_path: str
