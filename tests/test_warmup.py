"""Regression tests for startup warmup routines."""

from __future__ import annotations

import logging
from typing import Any
from unittest.mock import AsyncMock

import pytest

import smartmark.warmup as warmup
from smartmark.realtime.feed import InMemoryChangeFeed


class _DummyTransaction:
    """Async context manager that hands out a mocked connection."""

    def __init__(self) -> None:
        self.connection: AsyncMock = AsyncMock()

    async def __aenter__(self) -> AsyncMock:
        return self.connection

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: Any,
    ) -> bool:
        return False


@pytest.mark.asyncio
async def test_warmup_database_executes_ping(
    caplog: pytest.LogCaptureFixture,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    caplog.set_level(logging.INFO)

    dummy_txn = _DummyTransaction()
    sentinel_engine = object()
    captured_engines: list[object] = []

    def _capture_engine(engine: object) -> _DummyTransaction:
        captured_engines.append(engine)
        return dummy_txn

    monkeypatch.setattr(warmup, "begin_engine_transaction", _capture_engine)

    await warmup.warmup_database(resolve_engine=lambda: sentinel_engine)

    assert captured_engines == [sentinel_engine]
    executed_statement = dummy_txn.connection.execute.await_args.args[0]
    assert str(executed_statement).strip().upper() == "SELECT 1"
    assert not [record for record in caplog.records if record.levelno >= logging.WARNING]


@pytest.mark.asyncio
async def test_warmup_database_logs_failures(
    caplog: pytest.LogCaptureFixture,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    def _explode(engine: object) -> _DummyTransaction:
        raise OSError("database unreachable")

    monkeypatch.setattr(warmup, "begin_engine_transaction", _explode)

    with caplog.at_level(logging.WARNING):
        await warmup.warmup_database(resolve_engine=lambda: object())

    assert "Database warmup failed" in caplog.text


@pytest.mark.asyncio
async def test_warmup_change_feed_reports_broker(caplog: pytest.LogCaptureFixture) -> None:
    feed = InMemoryChangeFeed()

    async def _resolve() -> InMemoryChangeFeed:
        return feed

    with caplog.at_level(logging.INFO):
        assert await warmup.warmup_change_feed(_resolve) is feed

    assert "using memory broker" in caplog.text


@pytest.mark.asyncio
async def test_warmup_change_feed_swallows_errors(caplog: pytest.LogCaptureFixture) -> None:
    async def _resolve() -> InMemoryChangeFeed:
        raise RuntimeError("no broker")

    with caplog.at_level(logging.WARNING):
        assert await warmup.warmup_change_feed(_resolve) is None

    assert "Change feed warmup failed" in caplog.text
