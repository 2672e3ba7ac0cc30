from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlsplit

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from smartmark.db.change_capture import ChangeCapturingSession, dispatch_committed_changes
from smartmark.realtime.feed import ChangeFeed, get_change_feed
from smartmark.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)


def _validate_database_url(database_url: str) -> str:
    """Check that ``database_url`` names a host and database for PostgreSQL.

    SQLite URLs are passed through untouched; they are used for local
    development and the test-suite.
    """

    if database_url.startswith("sqlite"):
        return database_url

    parts = urlsplit(database_url)
    if not parts.hostname or not parts.path or parts.path == "/":
        raise RuntimeError(
            "DATABASE_URL appears malformed. Verify the host and database name are present."
        )
    return database_url


def get_database_url(settings: AppSettings | None = None) -> str:
    """Return the async database URL the application should connect to."""

    settings = settings or get_settings()
    return _validate_database_url(settings.resolved_database_url)


def create_engine(settings: AppSettings | None = None) -> AsyncEngine:
    """Create the async SQLAlchemy engine.

    PostgreSQL engines get a bounded pool: ``DB_POOL_SIZE`` warm connections,
    ``DB_POOL_TIMEOUT`` seconds to acquire one and ``DB_POOL_RECYCLE`` seconds
    before an idle connection is replaced.
    """

    settings = settings or get_settings()
    url = get_database_url(settings)

    engine_kwargs: dict[str, Any] = {"future": True, "echo": False}
    if settings.database_type == "postgresql":
        engine_kwargs.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_pre_ping=True,
            pool_recycle=settings.db_pool_recycle,
            pool_timeout=settings.db_pool_timeout,
            connect_args={"connect_timeout": max(1, int(settings.db_pool_timeout))},
        )

    engine = create_async_engine(url, **engine_kwargs)

    from smartmark.monitoring import setup_query_monitoring

    setup_query_monitoring(
        engine,
        slow_query_threshold=settings.slow_query_threshold,
        log_pool_stats=False,
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        expire_on_commit=False,
        class_=AsyncSession,
        sync_session_class=ChangeCapturingSession,
    )


@asynccontextmanager
async def begin_engine_transaction(engine: AsyncEngine) -> AsyncIterator[Any]:
    """Yield a connection from ``engine.begin()`` with mock-friendly support."""

    begin_result = engine.begin()
    if asyncio.iscoroutine(begin_result):
        begin_context = await begin_result
    else:
        begin_context = begin_result

    async with begin_context as connection:
        yield connection


# Global engine/session instances for FastAPI dependency injection
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or create the global engine instance."""
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Lazily create a session factory bound to the shared engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def dispose_engine() -> None:
    """Close pooled connections; used on application shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def get_db(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    feed: ChangeFeed = Depends(get_change_feed),
) -> AsyncIterator[AsyncSession]:
    """
    Dependency to provide a database session.

    Commits on success and rolls back on error.  Changes captured during the
    committed transaction are then handed to the change feed.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        await dispatch_committed_changes(session, feed)


async def commit_and_dispatch(session: AsyncSession, feed: ChangeFeed) -> int:
    """Commit ``session`` now and publish what the transaction changed.

    Write paths call this before returning so the response is only sent once
    the row is durable; the later commit in :func:`get_db` is then a no-op.
    """
    await session.commit()
    return await dispatch_committed_changes(session, feed)

