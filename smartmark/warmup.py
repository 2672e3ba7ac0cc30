"""Startup warmup so the first request does not pay for cold connections.

Opens one pooled database connection and initialises the change-feed broker
(connecting to Redis when configured).  Failures are logged, never raised:
the API still starts and reports errors per request instead.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine

from smartmark.db.connection import begin_engine_transaction
from smartmark.realtime.feed import ChangeFeed

logger = logging.getLogger(__name__)


async def warmup_database(resolve_engine: Callable[[], AsyncEngine]) -> None:
    """Run ``SELECT 1`` so the pool holds a live connection."""
    try:
        start = time.perf_counter()
        async with begin_engine_transaction(resolve_engine()) as conn:
            await conn.execute(text("SELECT 1"))
        elapsed = (time.perf_counter() - start) * 1000
        logger.info("Database connection warmed up (%.0fms)", elapsed)
    except Exception as exc:
        logger.warning("Database warmup failed: %s", exc)


async def warmup_change_feed(
    resolve_feed: Callable[[], Awaitable[ChangeFeed]],
) -> ChangeFeed | None:
    """Create the change-feed broker and report which one is active."""
    try:
        start = time.perf_counter()
        feed = await resolve_feed()
        elapsed = (time.perf_counter() - start) * 1000
        logger.info("Change feed ready using %s broker (%.0fms)", feed.name, elapsed)
        return feed
    except Exception as exc:
        logger.warning("Change feed warmup failed: %s", exc)
        return None


async def warmup_all(
    *,
    resolve_engine: Callable[[], AsyncEngine],
    resolve_feed: Callable[[], Awaitable[ChangeFeed]],
) -> None:
    logger.info("Starting backend warmup")
    start = time.perf_counter()
    await warmup_database(resolve_engine)
    await warmup_change_feed(resolve_feed)
    logger.info("Backend warmup complete (%.0fms)", (time.perf_counter() - start) * 1000)
