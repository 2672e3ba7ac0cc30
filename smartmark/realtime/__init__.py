"""Real-time propagation of bookmark changes to subscribed clients."""

from .events import BOOKMARKS_TABLE, ChangeEvent, ChangeType
from .feed import (
    ChangeFeed,
    InMemoryChangeFeed,
    RedisChangeFeed,
    Subscription,
    close_change_feed,
    get_change_feed,
)

__all__ = [
    "BOOKMARKS_TABLE",
    "ChangeEvent",
    "ChangeFeed",
    "ChangeType",
    "InMemoryChangeFeed",
    "RedisChangeFeed",
    "Subscription",
    "close_change_feed",
    "get_change_feed",
]
