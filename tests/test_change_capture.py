"""Committed writes reach the change feed exactly once; rolled back writes never do."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from smartmark.db.change_capture import dispatch_committed_changes, pending_changes
from smartmark.db.repositories import BookmarkRepository
from smartmark.realtime.events import ChangeType
from smartmark.realtime.feed import InMemoryChangeFeed
from tests.support import ALICE, BOB, make_bookmark


@pytest.mark.asyncio
async def test_committed_insert_publishes_one_event(
    session_factory: async_sessionmaker[AsyncSession], feed: InMemoryChangeFeed
) -> None:
    subscription = await feed.subscribe(ALICE.id)

    async with session_factory() as session:
        row = await BookmarkRepository(session).create(
            user_id=ALICE.id, url="https://example.com", title="Example"
        )
        await session.commit()
        assert await dispatch_committed_changes(session, feed) == 1

    event = await subscription.next_event(timeout=1)
    assert event is not None
    assert event.event_type is ChangeType.INSERT
    assert event.new is not None
    assert event.new.id == row.id
    assert event.new.title == "Example"
    assert await subscription.next_event(timeout=0.05) is None


@pytest.mark.asyncio
async def test_rolled_back_insert_publishes_nothing(
    session_factory: async_sessionmaker[AsyncSession], feed: InMemoryChangeFeed
) -> None:
    subscription = await feed.subscribe(ALICE.id)

    async with session_factory() as session:
        await BookmarkRepository(session).create(
            user_id=ALICE.id, url="https://example.com", title="Never"
        )
        assert len(pending_changes(session)) == 1
        await session.rollback()
        assert pending_changes(session) == []
        assert await dispatch_committed_changes(session, feed) == 0

    assert await subscription.next_event(timeout=0.05) is None


@pytest.mark.asyncio
async def test_dispatch_drains_committed_events(
    session_factory: async_sessionmaker[AsyncSession], feed: InMemoryChangeFeed
) -> None:
    async with session_factory() as session:
        session.add(make_bookmark(ALICE, title="Once"))
        await session.commit()
        assert await dispatch_committed_changes(session, feed) == 1
        assert await dispatch_committed_changes(session, feed) == 0


@pytest.mark.asyncio
async def test_events_are_routed_to_the_owner_only(
    session_factory: async_sessionmaker[AsyncSession], feed: InMemoryChangeFeed
) -> None:
    alice = await feed.subscribe(ALICE.id)
    bob = await feed.subscribe(BOB.id)

    async with session_factory() as session:
        session.add(make_bookmark(ALICE, title="Private"))
        await session.commit()
        await dispatch_committed_changes(session, feed)

    assert await alice.next_event(timeout=1) is not None
    assert await bob.next_event(timeout=0.05) is None


@pytest.mark.asyncio
async def test_update_and_delete_are_captured(
    session_factory: async_sessionmaker[AsyncSession], feed: InMemoryChangeFeed
) -> None:
    subscription = await feed.subscribe(ALICE.id)

    async with session_factory() as session:
        row = make_bookmark(ALICE, title="Draft")
        session.add(row)
        await session.commit()

        row.title = "Final"
        await session.commit()

        await session.delete(row)
        await session.commit()
        assert await dispatch_committed_changes(session, feed) == 3

    received = [await subscription.next_event(timeout=1) for _ in range(3)]
    assert [event.event_type for event in received] == [
        ChangeType.INSERT,
        ChangeType.UPDATE,
        ChangeType.DELETE,
    ]
    assert received[1].new is not None and received[1].new.title == "Final"
    assert received[1].old == {"id": row.id}
    assert received[2].old is not None and received[2].old["id"] == row.id
