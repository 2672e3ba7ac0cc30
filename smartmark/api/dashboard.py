"""Dashboard summary for the signed-in user."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from smartmark.schemas.bookmark import DashboardSummary
from smartmark.schemas.user import User
from smartmark.services.bookmark_service import BookmarkService, get_bookmark_service
from smartmark.services.identity import get_current_user

router = APIRouter()


@router.get("", response_model=DashboardSummary)
async def get_dashboard(
    user: User = Depends(get_current_user),
    service: BookmarkService = Depends(get_bookmark_service),
) -> DashboardSummary:
    """Return the bookmark count and the five most recent bookmarks."""

    return await service.dashboard(user_id=user.id)
