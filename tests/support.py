"""Test doubles and row builders shared across the suite."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from smartmark.db.models import Bookmark
from smartmark.schemas.user import User

ALICE = User(id="user-alice", email="alice@example.com", name="Alice")
BOB = User(id="user-bob", email="bob@example.com", name="Bob")

TOKENS = {"alice-token": ALICE, "bob-token": BOB}


class FakeIdentityProvider:
    """Resolves the tokens in ``TOKENS``; everything else is an invalid session."""

    def __init__(self, tokens: dict[str, User] | None = None) -> None:
        self.tokens = dict(TOKENS if tokens is None else tokens)
        self.signed_out: list[str] = []

    async def get_user(self, access_token: str) -> User | None:
        return self.tokens.get(access_token)

    async def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)
        self.tokens.pop(access_token, None)


def auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def make_bookmark(
    user: User,
    *,
    title: str,
    url: str | None = None,
    minutes_ago: int = 0,
) -> Bookmark:
    """Build an ORM row with an explicit ``created_at`` so ordering is deterministic."""
    created = datetime(2024, 1, 1, 12, 0, tzinfo=UTC) - timedelta(minutes=minutes_ago)
    return Bookmark(
        user_id=user.id,
        url=url or f"https://example.com/{title.lower().replace(' ', '-')}",
        title=title,
        created_at=created,
        updated_at=created,
    )
