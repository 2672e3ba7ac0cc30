"""Async HTTP client for the Smartmark API."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
from pydantic import ValidationError

from smartmark.client.sse import iter_sse_messages
from smartmark.realtime.events import ChangeEvent, ChangeType
from smartmark.schemas.bookmark import Bookmark, DashboardSummary
from smartmark.schemas.user import User

logger = logging.getLogger(__name__)

_CHANGE_EVENTS = {change.value for change in ChangeType}


class BookmarkApiError(Exception):
    """A non-2xx answer from the API, carrying its ``error`` message."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


def _raise_for_error(response: httpx.Response) -> None:
    if response.is_success:
        return
    message = response.reason_phrase or "Request failed"
    try:
        body: Any = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        message = body["error"]
    raise BookmarkApiError(response.status_code, message)


class BookmarksApiClient:
    def __init__(
        self,
        base_url: str,
        access_token: str | None = None,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {access_token}"} if access_token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "BookmarksApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def current_user(self) -> User:
        response = await self._client.get("/api/auth/me")
        _raise_for_error(response)
        return User.model_validate(response.json())

    async def sign_out(self) -> None:
        response = await self._client.post("/api/auth/signout")
        _raise_for_error(response)

    async def list_bookmarks(self) -> list[Bookmark]:
        response = await self._client.get("/api/bookmarks")
        _raise_for_error(response)
        return [Bookmark.model_validate(item) for item in response.json()]

    async def create_bookmark(self, url: str, title: str) -> Bookmark:
        response = await self._client.post("/api/bookmarks", json={"url": url, "title": title})
        _raise_for_error(response)
        return Bookmark.model_validate(response.json())

    async def delete_bookmark(self, bookmark_id: str) -> None:
        response = await self._client.delete(f"/api/bookmarks/{bookmark_id}")
        _raise_for_error(response)

    async def dashboard(self) -> DashboardSummary:
        response = await self._client.get("/api/dashboard")
        _raise_for_error(response)
        return DashboardSummary.model_validate(response.json())

    async def stream_changes(
        self, *, on_ready: Callable[[], None] | None = None
    ) -> AsyncIterator[ChangeEvent]:
        """Yield change events for the signed-in user until the server closes.

        ``on_ready`` is called once the server confirms the subscription.
        Frames whose payload is not a valid change event are logged and skipped.
        """

        timeout = httpx.Timeout(self._client.timeout.connect, read=None)
        async with self._client.stream("GET", "/api/bookmarks/feed", timeout=timeout) as response:
            if response.is_error:
                await response.aread()
                _raise_for_error(response)
            async for message in iter_sse_messages(response.aiter_lines()):
                if message.event == "ready":
                    if on_ready is not None:
                        on_ready()
                    continue
                if message.event not in _CHANGE_EVENTS:
                    logger.debug("Ignoring %s message from change stream", message.event)
                    continue
                try:
                    event = ChangeEvent.from_json(message.data)
                except ValidationError as exc:
                    logger.warning(
                        "Skipping malformed %s message from change stream: %s",
                        message.event,
                        exc,
                    )
                    continue
                yield event
