"""
StackIt Backend — Notification Schemas
=======================================

What:  API contract for the notification inbox endpoints.
"""

import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: uuid.UUID
    sender_id: Optional[uuid.UUID] = None
    type: str = Field(description="vote, acceptance, answer or comment")
    title: str
    message: str
    data: Optional[Dict[str, Any]] = Field(
        default=None, description="Display data: question title, target ids, vote type"
    )
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationListResponse(BaseModel):
    """
    Page-number pagination, matching what the inbox UI expects:
    `pages` is ceil(total / limit) and 0 for an empty inbox.
    """
    notifications: List[NotificationResponse]
    page: int
    limit: int
    total: int
    pages: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class NotificationStatsResponse(BaseModel):
    total: int = 0
    unread: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)


class BulkUpdateResponse(BaseModel):
    updated: int = Field(description="Number of notifications changed")
