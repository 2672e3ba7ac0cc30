"""Database access for bookmarks."""

from __future__ import annotations

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from smartmark.db.change_capture import record_change, snapshot
from smartmark.db.models import Bookmark
from smartmark.realtime.events import ChangeEvent


class BookmarkRepository:
    """Encapsulates SQLAlchemy operations on the ``bookmarks`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_for_user(self, user_id: str, *, limit: int | None = None) -> list[Bookmark]:
        """Return the user's bookmarks, newest first."""

        query = (
            select(Bookmark)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self._session.execute(query)
        return list(result.scalars().all())

    async def count_for_user(self, user_id: str) -> int:
        query = select(func.count(Bookmark.id)).where(Bookmark.user_id == user_id)
        result = await self._session.execute(query)
        return int(result.scalar_one())

    async def get(self, bookmark_id: str) -> Bookmark | None:
        return await self._session.get(Bookmark, bookmark_id)

    async def create(self, *, user_id: str, url: str, title: str) -> Bookmark:
        bookmark = Bookmark(user_id=user_id, url=url, title=title)
        self._session.add(bookmark)
        await self._session.flush()
        return bookmark

    async def delete_owned(self, bookmark: Bookmark, *, user_id: str) -> bool:
        """Delete ``bookmark`` only if it still exists and belongs to ``user_id``.

        Returns ``False`` when no row matched, i.e. it was removed concurrently.
        """

        before = snapshot(bookmark)
        result = await self._session.execute(
            delete(Bookmark)
            .where(Bookmark.id == bookmark.id, Bookmark.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        self._session.expunge(bookmark)
        if result.rowcount == 0:
            return False

        record_change(self._session, ChangeEvent.deleted(before))
        return True
