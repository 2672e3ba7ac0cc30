"""Slow-statement logging and pool diagnostics for the Smartmark database."""

import logging
import time
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

_MAX_LOGGED_STATEMENT = 500


def setup_query_monitoring(
    engine: AsyncEngine,
    slow_query_threshold: float = 0.1,
    log_pool_stats: bool = False,
) -> None:
    """Log a warning for every statement slower than ``slow_query_threshold``.

    Args:
        engine: Async engine whose ``sync_engine`` receives the cursor hooks.
        slow_query_threshold: Threshold in seconds.
        log_pool_stats: Also log pool occupancy on every checkout (debug level).
    """
    sync_engine = engine.sync_engine

    @event.listens_for(sync_engine, "before_cursor_execute")
    def receive_before_cursor_execute(
        conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool
    ) -> None:
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(sync_engine, "after_cursor_execute")
    def receive_after_cursor_execute(
        conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool
    ) -> None:
        total = time.perf_counter() - conn.info["query_start_time"].pop()
        if total <= slow_query_threshold:
            return

        truncated = statement[:_MAX_LOGGED_STATEMENT]
        if len(statement) > _MAX_LOGGED_STATEMENT:
            truncated += "..."
        logger.warning(
            "Slow query detected (%.3fs): %s",
            total,
            truncated,
            extra={
                "duration_seconds": total,
                "threshold_seconds": slow_query_threshold,
            },
        )

    if log_pool_stats:

        @event.listens_for(sync_engine, "checkout")
        def receive_checkout(dbapi_conn: Any, connection_record: Any, connection_proxy: Any) -> None:
            log_pool_status(engine)

    logger.info(
        "Query monitoring enabled (slow query threshold: %ss, pool stats logging: %s)",
        slow_query_threshold,
        log_pool_stats,
    )


def log_pool_status(engine: AsyncEngine) -> None:
    """Log current connection pool occupancy."""
    pool = engine.sync_engine.pool
    logger.debug("Connection pool status: %s", pool.status())
