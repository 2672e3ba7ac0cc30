"""Signed-in session shared by the client views."""

from __future__ import annotations

from dataclasses import dataclass

from smartmark.client.api import BookmarkApiError, BookmarksApiClient
from smartmark.schemas.user import User


@dataclass
class SessionContext:
    """The current user plus the API client bound to their credentials."""

    user: User
    api: BookmarksApiClient

    @classmethod
    async def load(cls, api: BookmarksApiClient) -> "SessionContext":
        """Resolve the signed-in user; raises :class:`BookmarkApiError` (401) when there is none."""

        user = await api.current_user()
        return cls(user=user, api=api)

    async def sign_out(self) -> None:
        await self.api.sign_out()


__all__ = ["BookmarkApiError", "SessionContext"]
