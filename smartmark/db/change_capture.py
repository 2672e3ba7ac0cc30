"""Turn committed bookmark writes into change-feed events.

Sessions created by :func:`smartmark.db.connection.create_session_factory`
use :class:`ChangeCapturingSession`.  Its flush hook records one
:class:`~smartmark.realtime.events.ChangeEvent` per inserted, updated or
deleted ``Bookmark`` row; the events only become publishable once the
surrounding transaction commits and are discarded on rollback.  Request
handlers never publish anything themselves.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from smartmark.db.models import Bookmark
from smartmark.realtime.events import ChangeEvent
from smartmark.realtime.feed import ChangeFeed
from smartmark.schemas.bookmark import Bookmark as BookmarkSchema

logger = logging.getLogger(__name__)

_PENDING_KEY = "smartmark.pending_changes"
_COMMITTED_KEY = "smartmark.committed_changes"


class ChangeCapturingSession(Session):
    """ORM session whose bookmark mutations are recorded for the change feed."""


def _sync_session(session: Session | AsyncSession) -> Session:
    if isinstance(session, AsyncSession):
        return session.sync_session
    return session


def snapshot(bookmark: Bookmark) -> BookmarkSchema:
    return BookmarkSchema.model_validate(bookmark)


def record_change(session: Session | AsyncSession, change: ChangeEvent) -> None:
    """Queue ``change`` on the session's current transaction.

    Needed for bulk statements such as ``DELETE ... WHERE``, which bypass the
    unit of work and therefore never reach the flush hook.
    """

    sync_session = _sync_session(session)
    if not isinstance(sync_session, ChangeCapturingSession):
        logger.debug("Session %r does not capture changes; ignoring %s", sync_session, change.event_type)
        return
    sync_session.info.setdefault(_PENDING_KEY, []).append(change)


def pending_changes(session: Session | AsyncSession) -> list[ChangeEvent]:
    return list(_sync_session(session).info.get(_PENDING_KEY, ()))


@event.listens_for(ChangeCapturingSession, "after_flush")
def _capture_flush(session: Session, flush_context: Any) -> None:
    # new/dirty/deleted still describe the pre-flush state at this point.
    for instance in session.new:
        if isinstance(instance, Bookmark):
            record_change(session, ChangeEvent.inserted(snapshot(instance)))
    for instance in session.dirty:
        if isinstance(instance, Bookmark) and session.is_modified(instance):
            record_change(session, ChangeEvent.updated(snapshot(instance)))
    for instance in session.deleted:
        if isinstance(instance, Bookmark):
            record_change(session, ChangeEvent.deleted(snapshot(instance)))


@event.listens_for(ChangeCapturingSession, "after_commit")
def _promote_on_commit(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, None)
    if pending:
        session.info.setdefault(_COMMITTED_KEY, []).extend(pending)


@event.listens_for(ChangeCapturingSession, "after_rollback")
def _discard_on_rollback(session: Session) -> None:
    discarded = session.info.pop(_PENDING_KEY, None)
    if discarded:
        logger.debug("Discarded %d uncommitted change event(s)", len(discarded))


async def dispatch_committed_changes(
    session: Session | AsyncSession, feed: ChangeFeed
) -> int:
    """Publish every committed change recorded on ``session``.

    Returns the number of events handed to the feed, in commit order.
    """

    committed: list[ChangeEvent] = _sync_session(session).info.pop(_COMMITTED_KEY, [])
    for change in committed:
        await feed.publish(change)
        logger.debug(
            "Published %s for bookmark %s to %s feed",
            change.event_type.value,
            change.record_id,
            feed.name,
        )
    return len(committed)


__all__ = [
    "ChangeCapturingSession",
    "dispatch_committed_changes",
    "pending_changes",
    "record_change",
    "snapshot",
]
