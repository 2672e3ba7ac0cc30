"""Business logic powering the bookmarks API endpoints.

Every operation takes the caller's identity from the session dependency, never
from the request body.  Failures are raised as built-in exceptions that the
router translates to HTTP responses:

* ``ValueError`` – missing URL or title (400).
* ``LookupError`` – no such bookmark (404).
* ``PermissionError`` – the bookmark belongs to someone else (403).
"""

from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from smartmark.db.connection import commit_and_dispatch, get_db
from smartmark.db.repositories import BookmarkRepository
from smartmark.realtime.feed import ChangeFeed, get_change_feed
from smartmark.schemas.bookmark import Bookmark, BookmarkCreate, DashboardSummary

logger = logging.getLogger(__name__)

MISSING_FIELDS_MESSAGE = "URL and title are required"
NOT_FOUND_MESSAGE = "Bookmark not found"
FORBIDDEN_MESSAGE = "Forbidden"
DASHBOARD_RECENT_LIMIT = 5


def _is_blank(value: str | None) -> bool:
    return not value


class BookmarkService:
    """Coordinates ownership checks around :class:`BookmarkRepository`."""

    def __init__(
        self,
        repository: BookmarkRepository,
        *,
        session: AsyncSession,
        feed: ChangeFeed,
    ) -> None:
        self._repository = repository
        self._session = session
        self._feed = feed

    async def list_bookmarks(self, *, user_id: str) -> list[Bookmark]:
        rows = await self._repository.list_for_user(user_id)
        return [Bookmark.model_validate(row) for row in rows]

    async def create_bookmark(self, *, user_id: str, payload: BookmarkCreate) -> Bookmark:
        if _is_blank(payload.url) or _is_blank(payload.title):
            raise ValueError(MISSING_FIELDS_MESSAGE)

        row = await self._repository.create(
            user_id=user_id, url=payload.url, title=payload.title
        )
        await commit_and_dispatch(self._session, self._feed)
        logger.info("Created bookmark %s for user %s", row.id, user_id)
        return Bookmark.model_validate(row)

    async def delete_bookmark(self, *, bookmark_id: str, user_id: str) -> None:
        row = await self._repository.get(bookmark_id)
        if row is None:
            raise LookupError(NOT_FOUND_MESSAGE)
        if row.user_id != user_id:
            logger.warning(
                "User %s attempted to delete bookmark %s owned by another user",
                user_id,
                bookmark_id,
            )
            raise PermissionError(FORBIDDEN_MESSAGE)

        if not await self._repository.delete_owned(row, user_id=user_id):
            # Removed by a concurrent request between the lookup and the delete.
            raise LookupError(NOT_FOUND_MESSAGE)
        await commit_and_dispatch(self._session, self._feed)
        logger.info("Deleted bookmark %s for user %s", bookmark_id, user_id)

    async def dashboard(self, *, user_id: str) -> DashboardSummary:
        total = await self._repository.count_for_user(user_id)
        recent = await self._repository.list_for_user(
            user_id, limit=DASHBOARD_RECENT_LIMIT
        )
        return DashboardSummary(
            total=total,
            recent=[Bookmark.model_validate(row) for row in recent],
        )


async def get_bookmark_service(
    session: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
) -> BookmarkService:
    """FastAPI dependency that wires the service to the request's session."""

    return BookmarkService(BookmarkRepository(session), session=session, feed=feed)
