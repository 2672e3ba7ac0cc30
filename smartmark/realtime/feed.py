"""Per-owner change feed with Redis pub/sub and in-process brokers.

The feed exposes a single capability: publish committed bookmark changes and
let clients subscribe to the changes of one owner.  Redis carries events
between API workers; when it is not configured (or unreachable at startup)
an in-process broker built on :class:`asyncio.Queue` takes over, which is also
what the test-suite uses.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Protocol

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from smartmark.realtime.events import ChangeEvent
from smartmark.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)

_CHANNEL_PREFIX = "bookmarks:changes"
# How long a blocking Redis read waits before re-checking for closure.
_REDIS_POLL_SECONDS = 1.0
_CLOSED = object()


def channel_for(user_id: str) -> str:
    return f"{_CHANNEL_PREFIX}:{user_id}"


def _is_redis_connection_error(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` represents a Redis connectivity failure."""

    return isinstance(exc, (RedisConnectionError, RedisTimeoutError, OSError))


class Subscription(ABC):
    """Stream of change events for one owner.

    Usable as an async iterator and as an async context manager; leaving the
    context closes the subscription.
    """

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        self.closed = False

    @abstractmethod
    async def next_event(self, timeout: float | None = None) -> ChangeEvent | None:
        """Wait for the next event.

        Returns ``None`` when ``timeout`` elapses first or once the
        subscription has been closed.
        """

        raise NotImplementedError

    @abstractmethod
    async def close(self) -> None:
        raise NotImplementedError

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> ChangeEvent:
        event = await self.next_event()
        if event is None:
            raise StopAsyncIteration
        return event


class ChangeFeed(Protocol):
    name: str

    async def publish(self, event: ChangeEvent) -> None: ...

    async def subscribe(self, user_id: str) -> Subscription: ...

    async def close(self) -> None: ...


class InMemorySubscription(Subscription):
    def __init__(self, feed: "InMemoryChangeFeed", user_id: str, maxsize: int) -> None:
        super().__init__(user_id)
        self._feed = feed
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)

    def deliver(self, item: object) -> None:
        """Enqueue ``item``, evicting the oldest event when the buffer is full."""

        if self._queue.full():
            self._queue.get_nowait()
            if item is not _CLOSED:
                logger.warning(
                    "Change feed buffer full for user %s; dropped oldest event",
                    self.user_id,
                )
        self._queue.put_nowait(item)

    async def next_event(self, timeout: float | None = None) -> ChangeEvent | None:
        if self.closed and self._queue.empty():
            return None
        try:
            if timeout is None:
                item = await self._queue.get()
            else:
                item = await asyncio.wait_for(self._queue.get(), timeout)
        except TimeoutError:
            return None
        if item is _CLOSED:
            return None
        return item  # type: ignore[return-value]

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._feed._unregister(self)
        self.deliver(_CLOSED)


class InMemoryChangeFeed:
    """Broker that fans events out to subscribers in the same process."""

    name = "memory"

    def __init__(self, *, queue_size: int = 100) -> None:
        self._queue_size = queue_size
        self._subscribers: dict[str, set[InMemorySubscription]] = defaultdict(set)

    async def publish(self, event: ChangeEvent) -> None:
        for subscription in list(self._subscribers.get(event.user_id, ())):
            subscription.deliver(event)

    async def subscribe(self, user_id: str) -> InMemorySubscription:
        subscription = InMemorySubscription(self, user_id, self._queue_size)
        self._subscribers[user_id].add(subscription)
        logger.debug("Subscribed to in-process change feed for user %s", user_id)
        return subscription

    def subscriber_count(self, user_id: str) -> int:
        return len(self._subscribers.get(user_id, ()))

    def _unregister(self, subscription: InMemorySubscription) -> None:
        subscribers = self._subscribers.get(subscription.user_id)
        if not subscribers:
            return
        subscribers.discard(subscription)
        if not subscribers:
            del self._subscribers[subscription.user_id]

    async def close(self) -> None:
        for subscribers in list(self._subscribers.values()):
            for subscription in list(subscribers):
                await subscription.close()


class RedisSubscription(Subscription):
    def __init__(self, redis: Redis, user_id: str) -> None:
        super().__init__(user_id)
        self._pubsub = redis.pubsub()
        self._channel = channel_for(user_id)

    async def start(self) -> None:
        await self._pubsub.subscribe(self._channel)

    async def next_event(self, timeout: float | None = None) -> ChangeEvent | None:
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while not self.closed:
            remaining = _REDIS_POLL_SECONDS
            if deadline is not None:
                remaining = max(0.0, deadline - loop.time())
            message = await self._pubsub.get_message(
                ignore_subscribe_messages=True, timeout=remaining
            )
            if message is not None and message.get("type") == "message":
                try:
                    return ChangeEvent.from_json(message["data"])
                except ValidationError:
                    logger.warning(
                        "Discarding malformed change event on %s", self._channel
                    )
                    continue
            if deadline is not None and loop.time() >= deadline:
                return None
        return None

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        try:
            await self._pubsub.unsubscribe(self._channel)
        finally:
            await self._pubsub.aclose()


class RedisChangeFeed:
    """Broker publishing each owner's events on a dedicated Redis channel."""

    name = "redis"

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    async def publish(self, event: ChangeEvent) -> None:
        try:
            await self._redis.publish(channel_for(event.user_id), event.to_json())
        except Exception as exc:
            if _is_redis_connection_error(exc):
                # The row is already committed; subscribers resync on their next fetch.
                logger.warning(
                    "Failed to publish %s event for user %s: %s",
                    event.event_type.value,
                    event.user_id,
                    exc,
                )
                return
            raise

    async def subscribe(self, user_id: str) -> RedisSubscription:
        subscription = RedisSubscription(self._redis, user_id)
        await subscription.start()
        return subscription

    async def close(self) -> None:
        await self._redis.aclose()


_feed: ChangeFeed | None = None
_feed_lock = asyncio.Lock()


async def create_change_feed(settings: AppSettings) -> ChangeFeed:
    """Build the broker selected by ``settings``, falling back to in-process."""

    if settings.redis_url:
        client = Redis.from_url(settings.redis_url, decode_responses=True, encoding="utf-8")
        try:
            await client.ping()
        except Exception as exc:
            if not _is_redis_connection_error(exc):
                raise
            logger.warning(
                "Redis connection failed: %s. Falling back to the in-process change feed.",
                exc,
            )
            await client.aclose()
        else:
            logger.info("Change feed connected to Redis")
            return RedisChangeFeed(client)

    return InMemoryChangeFeed(queue_size=settings.feed_queue_size)


async def get_change_feed() -> ChangeFeed:
    """Return the process-wide change feed, creating it on first use."""

    global _feed
    if _feed is not None:
        return _feed

    async with _feed_lock:
        if _feed is None:
            _feed = await create_change_feed(get_settings())
    return _feed


async def close_change_feed() -> None:
    """Close the global change feed and its subscribers."""

    global _feed
    if _feed is not None:
        await _feed.close()
        _feed = None


__all__ = [
    "ChangeFeed",
    "InMemoryChangeFeed",
    "InMemorySubscription",
    "RedisChangeFeed",
    "RedisSubscription",
    "Subscription",
    "channel_for",
    "close_change_feed",
    "create_change_feed",
    "get_change_feed",
]
