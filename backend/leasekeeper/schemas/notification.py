"""Notification schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import Field

from leasekeeper.models.enums import NotificationType, UserRole
from leasekeeper.schemas.base import BaseSchema, IDMixin


class NotificationResponse(BaseSchema, IDMixin):
    user_id: UUID
    type: NotificationType
    title: str
    message: str
    data: Optional[dict[str, Any]] = None
    is_read: bool
    read_at: Optional[datetime] = None
    created_at: datetime


class NotificationListResponse(BaseSchema):
    notifications: list[NotificationResponse]
    unread_count: int


class MarkAllReadResponse(BaseSchema):
    updated: int


class BroadcastRequest(BaseSchema):
    """Staff broadcast to explicit users, or to every active user of a role."""

    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    user_ids: list[UUID] = Field(default_factory=list)
    role: Optional[UserRole] = None
    send_email: bool = False


class BroadcastResponse(BaseSchema):
    recipients: int
