"""Server-sent event framing for the bookmark change stream."""

from __future__ import annotations

import asyncio
import itertools
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from smartmark.realtime.events import ChangeEvent
from smartmark.realtime.feed import Subscription

logger = logging.getLogger(__name__)

SSE_MEDIA_TYPE = "text/event-stream"
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
KEEP_ALIVE = ": keep-alive\n\n"


def encode_message(event: str, data: str, *, message_id: int | None = None) -> str:
    """Frame one SSE message; multi-line ``data`` is split per the SSE grammar."""

    lines = [f"event: {event}"]
    if message_id is not None:
        lines.append(f"id: {message_id}")
    lines.extend(f"data: {chunk}" for chunk in data.splitlines() or [""])
    return "\n".join(lines) + "\n\n"


def encode_change(event: ChangeEvent, message_id: int) -> str:
    return encode_message(event.event_type.value, event.to_json(), message_id=message_id)


async def change_event_stream(
    subscription: Subscription,
    *,
    is_disconnected: Callable[[], Awaitable[bool]],
    heartbeat_seconds: float,
) -> AsyncIterator[str]:
    """Yield SSE frames for ``subscription`` until the client goes away.

    The subscription is always closed when the generator finishes, including
    when the server cancels it after a disconnect.
    """

    counter = itertools.count(1)
    try:
        yield encode_message("ready", json.dumps({"userId": subscription.user_id}))
        while not subscription.closed:
            if await is_disconnected():
                logger.debug("Change stream client disconnected for user %s", subscription.user_id)
                break
            event = await subscription.next_event(timeout=heartbeat_seconds)
            if event is None:
                if subscription.closed:
                    break
                yield KEEP_ALIVE
                continue
            yield encode_change(event, next(counter))
    except asyncio.CancelledError:
        logger.debug("Change stream cancelled for user %s", subscription.user_id)
        raise
    finally:
        await subscription.close()


__all__ = [
    "KEEP_ALIVE",
    "SSE_HEADERS",
    "SSE_MEDIA_TYPE",
    "change_event_stream",
    "encode_change",
    "encode_message",
]
