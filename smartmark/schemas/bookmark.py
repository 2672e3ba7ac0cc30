"""Pydantic schemas that power the bookmarks API surface."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase while accepting snake_case input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class BookmarkCreate(CamelModel):
    """Payload for creating a bookmark.

    Both fields are optional at the schema level so that a missing value is
    reported with the API's own 400 message instead of a generic validation
    failure; :class:`~smartmark.services.bookmark_service.BookmarkService`
    enforces presence.
    """

    url: str | None = Field(None, description="Target URL, stored verbatim")
    title: str | None = Field(None, description="Display title for the link")


class Bookmark(CamelModel):
    """Read model exposed in API responses and change events."""

    id: str = Field(..., description="Server-assigned opaque identifier")
    user_id: str = Field(..., description="Identifier of the owning user")
    url: str
    title: str
    created_at: datetime
    updated_at: datetime


class DeleteBookmarkResponse(BaseModel):
    success: bool = True


class DashboardSummary(CamelModel):
    """Headline numbers rendered on the dashboard."""

    total: int = Field(..., ge=0, description="Number of bookmarks owned by the caller")
    recent: list[Bookmark] = Field(
        default_factory=list,
        description="Most recently created bookmarks, newest first.",
    )


__all__ = [
    "Bookmark",
    "BookmarkCreate",
    "CamelModel",
    "DashboardSummary",
    "DeleteBookmarkResponse",
]
