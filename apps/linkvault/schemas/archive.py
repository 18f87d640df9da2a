"""Pydantic schemas for bookmarks and their content archives."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class BookmarkCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    url: str = Field(..., min_length=1, max_length=2048)
    note: str | None = None


class BookmarkOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: UUID
    url: str
    submitted_url: str
    note: str | None
    created_at: datetime


class ArchiveOut(BaseModel):
    """Archive with extracted content. state is the most-recent transition's state."""

    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: UUID
    bookmark_id: UUID
    state: str = Field(validation_alias=AliasChoices("current_state", "state"))
    title: str | None
    description: str | None
    content_text: str | None
    content_html: str | None
    image_url: str | None
    metadata: dict[str, Any] | None = Field(default=None, validation_alias=AliasChoices("meta", "metadata"))
    error_message: str | None
    fetched_at: datetime | None
    created_at: datetime
    updated_at: datetime


class ArchiveTransitionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: UUID
    to_state: str
    sort_key: int
    most_recent: bool
    metadata: dict[str, Any] | None = Field(default=None, validation_alias=AliasChoices("meta", "metadata"))
    created_at: datetime
