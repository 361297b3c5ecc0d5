"""Notification endpoints."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from app.container import ServiceContainer
from app.dependencies import get_container, get_current_user
from app.schemas.notification import Notification
from app.schemas.user import CurrentUser
from app.utils.result import respond

logger = logging.getLogger(__name__)

router = APIRouter()

KEEP_ALIVE_SECONDS = 15.0


@router.get("")
async def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=200),
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Return notifications for current user."""
    result = await container.notifications.list_notifications(
        user.id,
        limit=limit,
        unread_only=unread_only,
    )
    return respond(result)


@router.get("/unread-count")
async def unread_count(
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    return respond(await container.notifications.unread_count(user.id))


@router.put("/read-all")
async def mark_all_read(
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Mark all notifications as read for current user."""
    return respond(await container.notifications.mark_all_read(user.id))


@router.put("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> JSONResponse:
    """Mark a single notification as read."""
    return respond(await container.notifications.mark_read(notification_id, user_id=user.id))


@router.get("/stream")
async def stream_notifications(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
) -> StreamingResponse:
    """Push new notifications to the current user as Server-Sent Events."""

    async def events() -> AsyncIterator[str]:
        queue: asyncio.Queue[Notification] = asyncio.Queue()
        subscription = container.realtime.subscribe_to_user_notifications(
            user.id, queue.put_nowait
        )
        try:
            yield ": connected\n\n"
            while not await request.is_disconnected():
                try:
                    notification = await asyncio.wait_for(queue.get(), timeout=KEEP_ALIVE_SECONDS)
                except TimeoutError:
                    yield ": keep-alive\n\n"
                    continue
                yield f"event: notification\ndata: {notification.model_dump_json()}\n\n"
        finally:
            subscription()
            logger.debug("Notification stream for %s closed", user.id)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
