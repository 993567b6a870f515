"""
Pydantic schemas for notifications and their read state.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from backoffice.models.notification import NotificationType
from backoffice.schemas.base import CamelModel


class NotificationResponse(CamelModel):
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    booking_id: str
    edit_request_id: Optional[str] = None
    requester_id: Optional[str] = None
    requester_name: Optional[str] = None
    is_read: bool
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="extra")
    created_at: datetime


class MarkReadRequest(CamelModel):
    notification_ids: Optional[list[str]] = None
    mark_all: bool = False


class MarkReadResponse(CamelModel):
    success: bool = True


class UnreadCountResponse(CamelModel):
    count: int
