"""
StackIt Backend — Notification Inbox Routes
============================================

What:  The caller's notification inbox.
How:   Delegates to NotificationService on the request-scoped session.
       Static paths are registered before `/{notification_id}` so that
       "unread-count", "stats", "read-all" and "clear-read" are never parsed
       as ids.
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.routes.deps import get_current_user_id
from app.schemas.common import ErrorResponse
from app.schemas.notification import (
    BulkUpdateResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationStatsResponse,
    UnreadCountResponse,
)
from app.services.notification_service import notification_service

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])

_NOT_FOUND = {404: {"description": "Notification not found", "model": ErrorResponse}}


@router.get("", response_model=NotificationListResponse, summary="List notifications")
async def list_notifications(
    response: Response,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    unread_only: bool = Query(default=False, alias="unreadOnly"),
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationListResponse:
    result = await notification_service.list_notifications(
        db, user_id, page=page, limit=limit, unread_only=unread_only
    )
    response.headers["X-Total-Count"] = str(result.total)
    return result


@router.get("/unread-count", response_model=UnreadCountResponse, summary="Count unread notifications")
async def unread_count(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> UnreadCountResponse:
    return await notification_service.unread_count(db, user_id)


@router.get("/stats", response_model=NotificationStatsResponse, summary="Notification statistics")
async def notification_stats(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationStatsResponse:
    return await notification_service.stats(db, user_id)


@router.put("/read-all", response_model=BulkUpdateResponse, summary="Mark all as read")
async def mark_all_read(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> BulkUpdateResponse:
    return await notification_service.mark_all_read(db, user_id)


@router.delete("/clear-read", response_model=BulkUpdateResponse, summary="Delete read notifications")
async def clear_read(
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> BulkUpdateResponse:
    return await notification_service.clear_read(db, user_id)


@router.get(
    "/{notification_id}",
    response_model=NotificationResponse,
    responses=_NOT_FOUND,
    summary="Get one notification",
)
async def get_notification(
    notification_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationResponse:
    return await notification_service.get_notification(db, user_id, notification_id)


@router.put(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    responses=_NOT_FOUND,
    summary="Mark as read",
)
async def mark_read(
    notification_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationResponse:
    return await notification_service.mark_read(db, user_id, notification_id)


@router.put(
    "/{notification_id}/unread",
    response_model=NotificationResponse,
    responses=_NOT_FOUND,
    summary="Mark as unread",
)
async def mark_unread(
    notification_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> NotificationResponse:
    return await notification_service.mark_unread(db, user_id, notification_id)


@router.delete(
    "/{notification_id}",
    status_code=204,
    responses=_NOT_FOUND,
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: UUID,
    user_id: UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db_session),
) -> Response:
    await notification_service.delete_notification(db, user_id, notification_id)
    return Response(status_code=204)
