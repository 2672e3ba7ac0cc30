"""Client-side access to the Smartmark API: HTTP client, live list state and views."""

from smartmark.client.api import BookmarkApiError, BookmarksApiClient
from smartmark.client.session import SessionContext
from smartmark.client.state import BookmarkListState
from smartmark.client.views import AddBookmarkForm, BookmarkListView

__all__ = [
    "AddBookmarkForm",
    "BookmarkApiError",
    "BookmarkListState",
    "BookmarkListView",
    "BookmarksApiClient",
    "SessionContext",
]
