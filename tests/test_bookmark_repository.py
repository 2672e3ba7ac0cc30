"""Integration tests for ``BookmarkRepository`` against SQLite."""

from __future__ import annotations

import pytest
from sqlalchemy import Text
from sqlalchemy.ext.asyncio import AsyncSession

from smartmark.db.change_capture import pending_changes
from smartmark.db.models import Bookmark as BookmarkRow
from smartmark.db.repositories import BookmarkRepository
from smartmark.realtime.events import ChangeType
from tests.support import ALICE, BOB, make_bookmark


@pytest.mark.asyncio
async def test_list_for_user_returns_only_owned_rows_newest_first(session: AsyncSession) -> None:
    session.add_all(
        [
            make_bookmark(ALICE, title="Oldest", minutes_ago=30),
            make_bookmark(BOB, title="Not mine", minutes_ago=5),
            make_bookmark(ALICE, title="Newest", minutes_ago=1),
            make_bookmark(ALICE, title="Middle", minutes_ago=10),
        ]
    )
    await session.commit()

    rows = await BookmarkRepository(session).list_for_user(ALICE.id)

    assert [row.title for row in rows] == ["Newest", "Middle", "Oldest"]
    assert {row.user_id for row in rows} == {ALICE.id}


@pytest.mark.asyncio
async def test_list_for_user_honours_limit_and_count(session: AsyncSession) -> None:
    session.add_all(
        [make_bookmark(ALICE, title=f"Link {index}", minutes_ago=index) for index in range(7)]
    )
    await session.commit()
    repository = BookmarkRepository(session)

    recent = await repository.list_for_user(ALICE.id, limit=3)

    assert [row.title for row in recent] == ["Link 0", "Link 1", "Link 2"]
    assert await repository.count_for_user(ALICE.id) == 7
    assert await repository.count_for_user(BOB.id) == 0


@pytest.mark.asyncio
async def test_create_assigns_identifier_and_timestamps(session: AsyncSession) -> None:
    row = await BookmarkRepository(session).create(
        user_id=ALICE.id, url="https://example.com", title="Example"
    )

    assert row.id
    assert row.created_at is not None
    assert row.updated_at is not None
    assert [change.event_type for change in pending_changes(session)] == [ChangeType.INSERT]


@pytest.mark.asyncio
async def test_delete_owned_removes_row_and_records_delete(session: AsyncSession) -> None:
    row = make_bookmark(ALICE, title="Doomed")
    session.add(row)
    await session.commit()
    repository = BookmarkRepository(session)

    loaded = await repository.get(row.id)
    assert loaded is not None
    assert await repository.delete_owned(loaded, user_id=ALICE.id) is True

    changes = pending_changes(session)
    assert len(changes) == 1
    assert changes[0].event_type is ChangeType.DELETE
    assert changes[0].record_id == row.id
    assert await repository.get(row.id) is None


@pytest.mark.asyncio
async def test_delete_owned_matches_owner_as_well_as_id(session: AsyncSession) -> None:
    row = make_bookmark(ALICE, title="Guarded")
    session.add(row)
    await session.commit()
    repository = BookmarkRepository(session)

    loaded = await repository.get(row.id)
    assert loaded is not None
    assert await repository.delete_owned(loaded, user_id=BOB.id) is False

    assert pending_changes(session) == []
    assert await repository.count_for_user(ALICE.id) == 1


def test_url_and_title_columns_are_unbounded() -> None:
    columns = BookmarkRow.__table__.c

    assert isinstance(columns.url.type, Text)
    assert isinstance(columns.title.type, Text)


@pytest.mark.asyncio
async def test_create_keeps_long_titles_intact(session: AsyncSession) -> None:
    title = "t" * 2000

    row = await BookmarkRepository(session).create(
        user_id=ALICE.id, url="https://example.com", title=title
    )
    await session.commit()

    stored = await BookmarkRepository(session).get(row.id)
    assert stored is not None
    assert stored.title == title
