"""Presentation controllers for the bookmark list and the add form.

Views hold no rendering code.  A renderer (the CLI, a TUI, a test) reads
their state and is told about changes through ``on_change``; user-facing
failures go through ``alert``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from contextlib import aclosing, suppress

import httpx

from smartmark.client.api import BookmarkApiError
from smartmark.client.session import SessionContext
from smartmark.client.state import BookmarkListState
from smartmark.schemas.bookmark import Bookmark

logger = logging.getLogger(__name__)

AlertCallback = Callable[[str], None]
ChangeCallback = Callable[[BookmarkListState], None]

DELETE_FAILED_MESSAGE = "Failed to delete bookmark"
ADD_FAILED_MESSAGE = "Failed to add bookmark"


def _ignore(_: object) -> None:
    return None


class BookmarkListView:
    """Live list of the signed-in user's bookmarks."""

    def __init__(
        self,
        context: SessionContext,
        *,
        initial: Iterable[Bookmark] = (),
        alert: AlertCallback = _ignore,
        on_change: ChangeCallback = _ignore,
    ) -> None:
        self._context = context
        self._alert = alert
        self._on_change = on_change
        self._task: asyncio.Task[None] | None = None
        self._ready = asyncio.Event()
        self.state = BookmarkListState(initial)

    @property
    def mounted(self) -> bool:
        return self._task is not None and not self._task.done()

    async def refresh(self) -> None:
        self.state.load(await self._context.api.list_bookmarks())
        self._on_change(self.state)

    async def mount(self) -> None:
        """Start consuming the change feed; a second call is a no-op.

        Returns once the server has confirmed the subscription (or the feed
        ended first), so a :meth:`refresh` issued afterwards cannot miss a
        change committed in between.
        """
        if self.mounted:
            return
        self._ready = asyncio.Event()
        self._task = asyncio.create_task(self._consume(), name="bookmark-feed")
        ready = asyncio.ensure_future(self._ready.wait())
        try:
            await asyncio.wait({ready, self._task}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            ready.cancel()

    async def unmount(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def wait(self) -> None:
        """Block until the feed ends (server closed the stream or it failed)."""
        if self._task is not None:
            await self._task

    async def delete(self, bookmark_id: str) -> bool:
        """Request deletion; the row leaves the list when the feed confirms it."""
        self.state.mark_deleting(bookmark_id)
        self._on_change(self.state)
        try:
            await self._context.api.delete_bookmark(bookmark_id)
        except (BookmarkApiError, httpx.HTTPError) as exc:
            logger.warning("Delete of %s failed: %s", bookmark_id, exc)
            self.state.clear_deleting()
            self._on_change(self.state)
            self._alert(DELETE_FAILED_MESSAGE)
            return False
        return True

    async def _consume(self) -> None:
        user_id = self._context.user.id
        try:
            async with aclosing(
                self._context.api.stream_changes(on_ready=self._ready.set)
            ) as events:
                async for event in events:
                    if event.user_id != user_id:
                        continue
                    if self.state.apply(event):
                        self._on_change(self.state)
        except (BookmarkApiError, httpx.HTTPError) as exc:
            logger.warning("Change feed ended: %s", exc)


class AddBookmarkForm:
    """Two-field form that creates a bookmark for the signed-in user."""

    def __init__(self, context: SessionContext, *, alert: AlertCallback = _ignore) -> None:
        self._context = context
        self._alert = alert
        self.url = ""
        self.title = ""
        self.loading = False

    async def submit(self) -> Bookmark | None:
        if not self.url or not self.title or self.loading:
            return None

        self.loading = True
        try:
            created = await self._context.api.create_bookmark(self.url, self.title)
        except (BookmarkApiError, httpx.HTTPError) as exc:
            logger.warning("Create bookmark failed: %s", exc)
            self._alert(ADD_FAILED_MESSAGE)
            return None
        finally:
            self.loading = False

        self.url = ""
        self.title = ""
        return created
