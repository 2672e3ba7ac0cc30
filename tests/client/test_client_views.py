"""Behaviour of the bookmark list view and the add-bookmark form."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from datetime import UTC, datetime

import pytest

from smartmark.client.api import BookmarkApiError
from smartmark.client.session import SessionContext
from smartmark.client.state import BookmarkListState
from smartmark.client.views import (
    ADD_FAILED_MESSAGE,
    DELETE_FAILED_MESSAGE,
    AddBookmarkForm,
    BookmarkListView,
)
from smartmark.realtime.events import ChangeEvent
from smartmark.schemas.bookmark import Bookmark
from tests.support import ALICE, BOB


def _bookmark(bookmark_id: str, owner: str = ALICE.id) -> Bookmark:
    now = datetime(2026, 1, 1, tzinfo=UTC)
    return Bookmark(
        id=bookmark_id,
        user_id=owner,
        url=f"https://example.com/{bookmark_id}",
        title=bookmark_id.title(),
        created_at=now,
        updated_at=now,
    )


class FakeApi:
    """Stands in for ``BookmarksApiClient``; events are pushed through a queue."""

    def __init__(self) -> None:
        self.events: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        self.listing: list[Bookmark] = []
        self.deleted: list[str] = []
        self.created: list[tuple[str, str]] = []
        self.fail = False
        self.streams_closed = 0
        self.calls: list[str] = []

    async def stream_changes(
        self, *, on_ready: Callable[[], None] | None = None
    ) -> AsyncIterator[ChangeEvent]:
        self.calls.append("subscribed")
        if on_ready is not None:
            on_ready()
        try:
            while True:
                event = await self.events.get()
                if event is None:
                    return
                yield event
        finally:
            self.streams_closed += 1

    async def list_bookmarks(self) -> list[Bookmark]:
        self.calls.append("listed")
        return list(self.listing)

    async def delete_bookmark(self, bookmark_id: str) -> None:
        if self.fail:
            raise BookmarkApiError(500, "Internal server error")
        self.deleted.append(bookmark_id)

    async def create_bookmark(self, url: str, title: str) -> Bookmark:
        if self.fail:
            raise BookmarkApiError(400, "URL and title are required")
        self.created.append((url, title))
        return _bookmark("created")


class Recorder:
    def __init__(self) -> None:
        self.snapshots: list[list[str]] = []
        self.alerts: list[str] = []
        self._changed = asyncio.Event()

    def on_change(self, state: BookmarkListState) -> None:
        self.snapshots.append([item.id for item in state.items])
        self._changed.set()

    async def next_change(self) -> list[str]:
        await asyncio.wait_for(self._changed.wait(), timeout=1)
        self._changed.clear()
        return self.snapshots[-1]


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def context(api: FakeApi) -> SessionContext:
    return SessionContext(user=ALICE, api=api)  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_mounted_view_applies_feed_events(api: FakeApi, context: SessionContext) -> None:
    recorder = Recorder()
    view = BookmarkListView(context, initial=[_bookmark("a")], on_change=recorder.on_change)

    await view.mount()
    await api.events.put(ChangeEvent.inserted(_bookmark("b")))
    assert await recorder.next_change() == ["b", "a"]

    await api.events.put(ChangeEvent.deleted(_bookmark("a")))
    assert await recorder.next_change() == ["b"]

    await view.unmount()
    assert api.streams_closed == 1
    assert not view.mounted


@pytest.mark.asyncio
async def test_events_for_other_users_are_ignored(api: FakeApi, context: SessionContext) -> None:
    recorder = Recorder()
    view = BookmarkListView(context, on_change=recorder.on_change)

    await view.mount()
    await api.events.put(ChangeEvent.inserted(_bookmark("theirs", owner=BOB.id)))
    await api.events.put(ChangeEvent.inserted(_bookmark("mine")))

    assert await recorder.next_change() == ["mine"]
    assert recorder.snapshots == [["mine"]]
    await view.unmount()


@pytest.mark.asyncio
async def test_unmount_without_mount_is_a_no_op(context: SessionContext) -> None:
    view = BookmarkListView(context)

    await view.unmount()

    assert not view.mounted


@pytest.mark.asyncio
async def test_wait_returns_when_feed_ends(api: FakeApi, context: SessionContext) -> None:
    view = BookmarkListView(context)
    await view.mount()

    await api.events.put(None)
    await asyncio.wait_for(view.wait(), timeout=1)

    assert not view.mounted


@pytest.mark.asyncio
async def test_refresh_merges_fetched_rows(api: FakeApi, context: SessionContext) -> None:
    api.listing = [_bookmark("x"), _bookmark("y")]
    view = BookmarkListView(context, initial=[_bookmark("x")])

    await view.refresh()

    assert [item.id for item in view.state.items] == ["x", "y"]


@pytest.mark.asyncio
async def test_delete_waits_for_feed_confirmation(api: FakeApi, context: SessionContext) -> None:
    view = BookmarkListView(context, initial=[_bookmark("a")])

    assert await view.delete("a") is True

    assert api.deleted == ["a"]
    assert view.state.deleting == "a"
    assert [item.id for item in view.state.items] == ["a"]


@pytest.mark.asyncio
async def test_failed_delete_alerts_and_reverts(api: FakeApi, context: SessionContext) -> None:
    recorder = Recorder()
    api.fail = True
    view = BookmarkListView(
        context,
        initial=[_bookmark("a")],
        alert=recorder.alerts.append,
        on_change=recorder.on_change,
    )

    assert await view.delete("a") is False

    assert recorder.alerts == [DELETE_FAILED_MESSAGE]
    assert view.state.deleting is None
    assert [item.id for item in view.state.items] == ["a"]


@pytest.mark.asyncio
async def test_form_submit_creates_and_clears_fields(api: FakeApi, context: SessionContext) -> None:
    form = AddBookmarkForm(context)
    form.url, form.title = "https://example.com", "Example"

    created = await form.submit()

    assert created is not None
    assert api.created == [("https://example.com", "Example")]
    assert (form.url, form.title, form.loading) == ("", "", False)


@pytest.mark.asyncio
async def test_form_ignores_blank_submission(api: FakeApi, context: SessionContext) -> None:
    form = AddBookmarkForm(context)
    form.url = "https://example.com"

    assert await form.submit() is None
    assert api.created == []


@pytest.mark.asyncio
async def test_form_failure_alerts_and_keeps_input(api: FakeApi, context: SessionContext) -> None:
    alerts: list[str] = []
    api.fail = True
    form = AddBookmarkForm(context, alert=alerts.append)
    form.url, form.title = "https://example.com", "Example"

    assert await form.submit() is None

    assert alerts == [ADD_FAILED_MESSAGE]
    assert (form.url, form.title, form.loading) == ("https://example.com", "Example", False)


@pytest.mark.asyncio
async def test_mount_returns_once_subscribed(api: FakeApi, context: SessionContext) -> None:
    view = BookmarkListView(context)

    await view.mount()
    await view.refresh()

    assert api.calls == ["subscribed", "listed"]
    assert view.mounted
    await view.unmount()


@pytest.mark.asyncio
async def test_insert_between_mount_and_refresh_is_kept(
    api: FakeApi, context: SessionContext
) -> None:
    recorder = Recorder()
    api.listing = [_bookmark("old")]
    view = BookmarkListView(context, on_change=recorder.on_change)

    await view.mount()
    await api.events.put(ChangeEvent.inserted(_bookmark("live")))
    assert await recorder.next_change() == ["live"]
    await view.refresh()

    assert [item.id for item in view.state.items] == ["live", "old"]
    await view.unmount()


@pytest.mark.asyncio
async def test_mount_returns_when_feed_fails_before_ready() -> None:
    class RejectingApi(FakeApi):
        async def stream_changes(
            self, *, on_ready: Callable[[], None] | None = None
        ) -> AsyncIterator[ChangeEvent]:
            raise BookmarkApiError(401, "Unauthorized")
            yield  # pragma: no cover

    view = BookmarkListView(SessionContext(user=ALICE, api=RejectingApi()))  # type: ignore[arg-type]

    await asyncio.wait_for(view.mount(), timeout=1)

    assert not view.mounted
