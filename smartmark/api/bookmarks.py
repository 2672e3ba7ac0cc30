"""FastAPI router exposing bookmark CRUD and the live change stream."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import StreamingResponse

from smartmark.realtime.feed import ChangeFeed, get_change_feed
from smartmark.realtime.sse import SSE_HEADERS, SSE_MEDIA_TYPE, change_event_stream
from smartmark.schemas.bookmark import Bookmark, BookmarkCreate, DeleteBookmarkResponse
from smartmark.schemas.user import User
from smartmark.services.bookmark_service import BookmarkService, get_bookmark_service
from smartmark.services.identity import get_current_user
from smartmark.settings import AppSettings, get_settings

router = APIRouter()


@router.get("", response_model=list[Bookmark])
async def list_bookmarks(
    user: User = Depends(get_current_user),
    service: BookmarkService = Depends(get_bookmark_service),
) -> list[Bookmark]:
    """Return the caller's bookmarks, newest first."""

    return await service.list_bookmarks(user_id=user.id)


@router.post("", response_model=Bookmark, status_code=status.HTTP_201_CREATED)
async def create_bookmark(
    payload: BookmarkCreate,
    user: User = Depends(get_current_user),
    service: BookmarkService = Depends(get_bookmark_service),
) -> Bookmark:
    """Store a bookmark owned by the caller.

    Subscribers learn about the new row from the change stream; the response
    only carries the created bookmark.
    """

    try:
        return await service.create_bookmark(user_id=user.id, payload=payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@router.get("/feed", response_class=StreamingResponse)
async def stream_bookmark_changes(
    request: Request,
    user: User = Depends(get_current_user),
    feed: ChangeFeed = Depends(get_change_feed),
    settings: AppSettings = Depends(get_settings),
) -> StreamingResponse:
    """Stream INSERT/UPDATE/DELETE events for the caller's bookmarks as SSE."""

    subscription = await feed.subscribe(user.id)
    stream = change_event_stream(
        subscription,
        is_disconnected=request.is_disconnected,
        heartbeat_seconds=settings.feed_heartbeat_seconds,
    )
    return StreamingResponse(stream, media_type=SSE_MEDIA_TYPE, headers=SSE_HEADERS)


@router.delete("/{bookmark_id}", response_model=DeleteBookmarkResponse)
async def delete_bookmark(
    bookmark_id: str,
    user: User = Depends(get_current_user),
    service: BookmarkService = Depends(get_bookmark_service),
) -> DeleteBookmarkResponse:
    """Delete one of the caller's bookmarks."""

    try:
        await service.delete_bookmark(bookmark_id=bookmark_id, user_id=user.id)
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return DeleteBookmarkResponse(success=True)
