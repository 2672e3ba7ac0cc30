"""Identity payloads returned by the session provider."""

from __future__ import annotations

from typing import Any

from pydantic import Field

from smartmark.schemas.bookmark import CamelModel


class User(CamelModel):
    """The authenticated caller as reported by the identity provider."""

    id: str = Field(..., min_length=1)
    email: str | None = None
    name: str | None = None
    avatar_url: str | None = None

    @classmethod
    def from_provider(cls, payload: dict[str, Any]) -> "User":
        """Build a user from the provider's ``/user`` response body."""

        metadata = payload.get("user_metadata") or {}
        return cls(
            id=str(payload["id"]),
            email=payload.get("email"),
            name=metadata.get("name") or metadata.get("full_name"),
            avatar_url=metadata.get("avatar_url"),
        )


class SignOutResponse(CamelModel):
    success: bool = True
