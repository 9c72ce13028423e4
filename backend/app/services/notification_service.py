"""
StackIt Backend — Notification Read Side
=========================================

What:  Inbox queries and bookkeeping for notifications the writer persisted.
Why:   The engine only produces notifications; users still need to page
       through them, mark them read and clean them up.
How:   Plain queries on the request's AsyncSession (injected by
       `get_db_session`, which commits on success). Every query is scoped to
       `recipient_id`, so another user's notification looks exactly like a
       missing one (NotFoundError, no existence leak).

Pagination:
    Page/limit offset paging ordered newest first, with `total` and `pages`
    so the inbox UI can render "page 2 of 7".
"""

import logging
import math
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import NotFoundError
from app.models import Notification
from app.schemas.notification import (
    BulkUpdateResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationStatsResponse,
    UnreadCountResponse,
)

logger = logging.getLogger(__name__)


class NotificationService:
    """Stateless; use the module-level `notification_service` singleton."""

    async def list_notifications(
        self,
        db: AsyncSession,
        recipient_id: uuid.UUID,
        page: int = 1,
        limit: int = 20,
        unread_only: bool = False,
    ) -> NotificationListResponse:
        filters = [Notification.recipient_id == recipient_id]
        if unread_only:
            filters.append(Notification.is_read.is_(False))

        total = (
            await db.execute(select(func.count(Notification.id)).where(*filters))
        ).scalar() or 0

        result = await db.execute(
            select(Notification)
            .where(*filters)
            .order_by(Notification.created_at.desc(), Notification.id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = [NotificationResponse.model_validate(n) for n in result.scalars().all()]

        return NotificationListResponse(
            notifications=items,
            page=page,
            limit=limit,
            total=total,
            pages=math.ceil(total / limit) if total else 0,
        )

    async def get_notification(
        self, db: AsyncSession, recipient_id: uuid.UUID, notification_id: uuid.UUID
    ) -> NotificationResponse:
        return NotificationResponse.model_validate(
            await self._get_owned(db, recipient_id, notification_id)
        )

    async def unread_count(self, db: AsyncSession, recipient_id: uuid.UUID) -> UnreadCountResponse:
        count = (
            await db.execute(
                select(func.count(Notification.id)).where(
                    Notification.recipient_id == recipient_id,
                    Notification.is_read.is_(False),
                )
            )
        ).scalar() or 0
        return UnreadCountResponse(unread_count=count)

    async def mark_read(
        self, db: AsyncSession, recipient_id: uuid.UUID, notification_id: uuid.UUID
    ) -> NotificationResponse:
        return await self._set_read(db, recipient_id, notification_id, True)

    async def mark_unread(
        self, db: AsyncSession, recipient_id: uuid.UUID, notification_id: uuid.UUID
    ) -> NotificationResponse:
        return await self._set_read(db, recipient_id, notification_id, False)

    async def mark_all_read(self, db: AsyncSession, recipient_id: uuid.UUID) -> BulkUpdateResponse:
        result = await db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True)
        )
        return BulkUpdateResponse(updated=result.rowcount)

    async def delete_notification(
        self, db: AsyncSession, recipient_id: uuid.UUID, notification_id: uuid.UUID
    ) -> None:
        notification = await self._get_owned(db, recipient_id, notification_id)
        await db.delete(notification)
        await db.flush()

    async def clear_read(self, db: AsyncSession, recipient_id: uuid.UUID) -> BulkUpdateResponse:
        result = await db.execute(
            delete(Notification).where(
                Notification.recipient_id == recipient_id,
                Notification.is_read.is_(True),
            )
        )
        return BulkUpdateResponse(updated=result.rowcount)

    async def stats(self, db: AsyncSession, recipient_id: uuid.UUID) -> NotificationStatsResponse:
        result = await db.execute(
            select(Notification.type, Notification.is_read, func.count(Notification.id))
            .where(Notification.recipient_id == recipient_id)
            .group_by(Notification.type, Notification.is_read)
        )
        total = 0
        unread = 0
        by_type: dict = {}
        for notification_type, is_read, count in result.all():
            total += count
            if not is_read:
                unread += count
            by_type[notification_type] = by_type.get(notification_type, 0) + count
        return NotificationStatsResponse(total=total, unread=unread, by_type=by_type)

    async def purge_older_than(self, db: AsyncSession, days: Optional[int] = None) -> int:
        """
        Delete notifications older than the retention window, read or not.

        Returns:
            Number of rows deleted.
        """
        days = days or settings.notification_retention_days
        cutoff = datetime.now(timezone.utc) - timedelta(days=days)
        result = await db.execute(delete(Notification).where(Notification.created_at < cutoff))
        if result.rowcount:
            logger.info("Purged %d notifications older than %d days", result.rowcount, days)
        return result.rowcount

    # ── Internals ─────────────────────────────────────────────────────────

    async def _get_owned(
        self, db: AsyncSession, recipient_id: uuid.UUID, notification_id: uuid.UUID
    ) -> Notification:
        result = await db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == recipient_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification is None:
            raise NotFoundError(resource="notification", resource_id=str(notification_id))
        return notification

    async def _set_read(
        self,
        db: AsyncSession,
        recipient_id: uuid.UUID,
        notification_id: uuid.UUID,
        is_read: bool,
    ) -> NotificationResponse:
        notification = await self._get_owned(db, recipient_id, notification_id)
        notification.is_read = is_read
        await db.flush()
        return NotificationResponse.model_validate(notification)


notification_service = NotificationService()
