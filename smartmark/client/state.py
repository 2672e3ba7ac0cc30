"""Client-side bookmark list reconciled against the change feed.

The list is seeded from a fetch and then kept current by applying change
events.  A fetch and the feed can race: an INSERT may arrive before the
fetch that already contains the same row returns, and a DELETE may arrive
before a fetch that still lists the removed row.  Both orders converge on a
list with each id at most once.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from smartmark.realtime.events import ChangeEvent, ChangeType
from smartmark.schemas.bookmark import Bookmark

logger = logging.getLogger(__name__)


class BookmarkListState:
    def __init__(self, initial: Iterable[Bookmark] = ()) -> None:
        self._items: list[Bookmark] = []
        self._live_ids: set[str] = set()
        self._removed_ids: set[str] = set()
        self.deleting: str | None = None
        self.load(initial)

    @property
    def items(self) -> list[Bookmark]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, bookmark_id: object) -> bool:
        return any(item.id == bookmark_id for item in self._items)

    def load(self, fetched: Iterable[Bookmark]) -> None:
        """Replace the list with ``fetched``, keeping rows the feed already delivered."""

        fetched = [item for item in fetched if item.id not in self._removed_ids]
        fetched_ids = {item.id for item in fetched}
        carried = [
            item
            for item in self._items
            if item.id in self._live_ids and item.id not in fetched_ids
        ]
        self._items = _unique(carried + fetched)

    def apply(self, event: ChangeEvent) -> bool:
        """Apply one change event, returning ``True`` when the list changed."""

        if event.event_type is ChangeType.INSERT and event.new is not None:
            row = event.new
            self._removed_ids.discard(row.id)
            self._live_ids.add(row.id)
            if self._replace(row):
                return True
            self._items.insert(0, row)
            return True

        if event.event_type is ChangeType.UPDATE and event.new is not None:
            return self._replace(event.new)

        if event.event_type is ChangeType.DELETE:
            bookmark_id = event.record_id
            if bookmark_id is None:
                logger.warning("DELETE event without an id ignored")
                return False
            self._removed_ids.add(bookmark_id)
            self._live_ids.discard(bookmark_id)
            if self.deleting == bookmark_id:
                self.deleting = None
            before = len(self._items)
            self._items = [item for item in self._items if item.id != bookmark_id]
            return len(self._items) != before

        return False

    def mark_deleting(self, bookmark_id: str) -> None:
        self.deleting = bookmark_id

    def clear_deleting(self) -> None:
        self.deleting = None

    def _replace(self, row: Bookmark) -> bool:
        for index, item in enumerate(self._items):
            if item.id == row.id:
                self._items[index] = row
                return True
        return False


def _unique(items: Iterable[Bookmark]) -> list[Bookmark]:
    seen: set[str] = set()
    result = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        result.append(item)
    return result
