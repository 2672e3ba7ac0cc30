"""Shared fixtures: a throwaway SQLite database, an in-process change feed and
an identity provider that knows a fixed set of tokens."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from smartmark.db.connection import create_session_factory, get_session_factory
from smartmark.db.models import Base
from smartmark.realtime.feed import InMemoryChangeFeed, get_change_feed
from smartmark.services.identity import get_identity_provider
from tests.support import FakeIdentityProvider


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """File-backed SQLite so every session in a test sees the same data."""
    db_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'smartmark.db'}")
    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[AsyncSession]:
    async with session_factory() as db_session:
        yield db_session
        if db_session.in_transaction():
            await db_session.rollback()


@pytest.fixture
def feed() -> InMemoryChangeFeed:
    return InMemoryChangeFeed(queue_size=10)


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def app_overrides(
    session_factory: async_sessionmaker[AsyncSession],
    feed: InMemoryChangeFeed,
    identity_provider: FakeIdentityProvider,
) -> Iterator[None]:
    """Point the app's database, feed and identity dependencies at the fixtures."""
    from smartmark.main import app

    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_change_feed] = lambda: feed
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider
    try:
        yield
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app_overrides: None) -> AsyncIterator[httpx.AsyncClient]:
    from smartmark.main import app

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client
