"""SQLAlchemy ORM models for stored bookmarks.

A bookmark belongs to exactly one user.  The owning identifier comes from the
external identity provider and is stored verbatim, so the column is a plain
string rather than a foreign key into a local users table.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


def new_bookmark_id() -> str:
    return str(uuid.uuid4())


class Bookmark(Base):
    """A saved URL owned by a single user."""

    __tablename__ = "bookmarks"
    __table_args__ = (
        Index("ix_bookmarks_user_id_created_at", "user_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=new_bookmark_id
    )
    user_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        index=True,
        doc=(
            "Opaque identifier of the owning user as reported by the identity"
            " provider (usually a UUID subject claim)."
        ),
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    def __repr__(self) -> str:
        return f"<Bookmark id={self.id!r} user_id={self.user_id!r}>"


__all__ = ["Base", "Bookmark", "new_bookmark_id", "utcnow"]
