"""Row-level change events carried by the bookmark change feed."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import Field

from smartmark.schemas.bookmark import Bookmark, CamelModel

BOOKMARKS_TABLE = "bookmarks"


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(CamelModel):
    """A committed mutation of one bookmark row.

    ``new`` holds the row after INSERT/UPDATE.  ``old`` holds the previous
    state for UPDATE/DELETE; consumers may only rely on its ``id`` key.
    """

    event_type: ChangeType
    table: str = BOOKMARKS_TABLE
    user_id: str
    new: Bookmark | None = None
    old: dict[str, Any] | None = None
    commit_timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def record_id(self) -> str | None:
        """Identifier of the affected row regardless of event type."""

        if self.new is not None:
            return self.new.id
        if self.old is not None:
            value = self.old.get("id")
            return str(value) if value is not None else None
        return None

    @classmethod
    def inserted(cls, row: Bookmark) -> "ChangeEvent":
        return cls(event_type=ChangeType.INSERT, user_id=row.user_id, new=row)

    @classmethod
    def updated(cls, row: Bookmark) -> "ChangeEvent":
        return cls(
            event_type=ChangeType.UPDATE,
            user_id=row.user_id,
            new=row,
            old={"id": row.id},
        )

    @classmethod
    def deleted(cls, row: Bookmark) -> "ChangeEvent":
        return cls(
            event_type=ChangeType.DELETE,
            user_id=row.user_id,
            old=row.model_dump(mode="json", by_alias=True),
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, raw: str | bytes) -> "ChangeEvent":
        return cls.model_validate_json(raw)


__all__ = ["BOOKMARKS_TABLE", "ChangeEvent", "ChangeType"]
