"""Incremental parser for ``text/event-stream`` responses."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator
from dataclasses import dataclass


@dataclass(frozen=True)
class SSEMessage:
    event: str
    data: str
    id: str | None = None


async def iter_sse_messages(lines: AsyncIterable[str]) -> AsyncIterator[SSEMessage]:
    """Group raw stream lines into messages.

    Comment lines (``: keep-alive``) are skipped and unknown fields ignored.
    A message is dispatched on the blank line that terminates it.
    """

    event = "message"
    data: list[str] = []
    message_id: str | None = None

    async for raw_line in lines:
        line = raw_line.rstrip("\r\n")
        if not line:
            if data:
                yield SSEMessage(event=event, data="\n".join(data), id=message_id)
            event, data, message_id = "message", [], None
            continue
        if line.startswith(":"):
            continue

        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
        elif field == "id":
            message_id = value

    if data:
        yield SSEMessage(event=event, data="\n".join(data), id=message_id)
