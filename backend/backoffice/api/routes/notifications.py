"""
Notification endpoints: list and read state.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.db.session import get_db
from backoffice.core.security import CurrentUser, get_current_user
from backoffice.schemas.notification import (
    MarkReadRequest, MarkReadResponse, NotificationResponse, UnreadCountResponse,
)
from backoffice.services.notification_service import (
    list_notifications, mark_all_read, mark_read, unread_count,
)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=list[NotificationResponse])
async def list_notifications_endpoint(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """The caller's notifications, newest first, at most NOTIFICATION_PAGE_SIZE."""
    return await list_notifications(db, user.id)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count_endpoint(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return UnreadCountResponse(count=await unread_count(db, user.id))


@router.put("", response_model=MarkReadResponse)
async def mark_read_endpoint(
    payload: MarkReadRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Mark some (`notificationIds`) or all (`markAll`) of the caller's notifications read."""
    if payload.mark_all:
        await mark_all_read(db, user.id)
    elif payload.notification_ids:
        await mark_read(db, user.id, payload.notification_ids)
    return MarkReadResponse(success=True)
