"""Pydantic schemas for API requests and responses."""

from smartmark.schemas.bookmark import (  # noqa: F401
    Bookmark,
    BookmarkCreate,
    DashboardSummary,
    DeleteBookmarkResponse,
)
from smartmark.schemas.error import (  # noqa: F401
    ErrorResponse,
    ErrorType,
    ValidationErrorDetail,
    ValidationErrorResponse,
)
from smartmark.schemas.user import SignOutResponse, User  # noqa: F401
