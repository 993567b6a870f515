"""
Notification fan-out and read state.

`notify()` is the one way a workflow step tells a user something:

  1. persist the notification (unread)      -> errors propagate to the step
  2. push it to the user's realtime topic   -> errors are logged and dropped

A persisted notification is the source of truth; the push only saves the
client a poll. A user who was offline sees it on the next GET /notifications.
"""

from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.config import get_settings
from backoffice.core.logging import get_logger
from backoffice.core.metrics import record_notification
from backoffice.models.notification import Notification, NotificationType
from backoffice.realtime.broker import RealtimeBroker
from backoffice.realtime.topics import RealtimeEvent, user_topic
from backoffice.schemas.notification import NotificationResponse

logger = get_logger(__name__)
settings = get_settings()


def notification_document(notification: Notification) -> dict:
    return NotificationResponse.model_validate(notification).to_wire()


async def notify(
    db: AsyncSession,
    broker: RealtimeBroker,
    *,
    user_id: str,
    type: NotificationType,
    title: str,
    message: str,
    booking_id: str,
    edit_request_id: Optional[str] = None,
    requester_id: Optional[str] = None,
    requester_name: Optional[str] = None,
    metadata: Optional[dict[str, Any]] = None,
    realtime_event: RealtimeEvent = RealtimeEvent.NEW_NOTIFICATION,
) -> Notification:
    """Persist one unread notification for `user_id` and push it."""
    notification = Notification(
        user_id=user_id,
        type=NotificationType(type).value,
        title=title,
        message=message,
        booking_id=booking_id,
        edit_request_id=edit_request_id,
        requester_id=requester_id,
        requester_name=requester_name,
        is_read=False,
        extra={k: v for k, v in (metadata or {}).items() if v is not None},
    )
    db.add(notification)
    await db.flush()
    await db.refresh(notification)
    await db.commit()

    record_notification(notification.type)
    logger.info(
        "notification_created",
        notification_id=notification.id,
        user_id=user_id,
        type=notification.type,
        booking_id=booking_id,
    )

    try:
        document = notification_document(notification)
        if realtime_event == RealtimeEvent.EDIT_PERMISSION_GRANTED:
            payload = {"bookingId": booking_id, "notification": document}
        else:
            payload = document
        broker.publish(user_topic(user_id), realtime_event, payload)
    except Exception as e:
        logger.warning("notification_push_failed", notification_id=notification.id, error=str(e))

    return notification


async def list_notifications(
    db: AsyncSession,
    user_id: str,
    limit: Optional[int] = None,
) -> list[Notification]:
    """A user's notifications, newest first, capped at NOTIFICATION_PAGE_SIZE."""
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .limit(limit or settings.NOTIFICATION_PAGE_SIZE)
    )
    return list(result.scalars().all())


async def unread_count(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return result.scalar_one()


async def mark_read(db: AsyncSession, user_id: str, notification_ids: list[str]) -> int:
    """
    Mark the given notifications read.
    Ids belonging to other users are ignored rather than rejected.
    """
    if not notification_ids:
        return 0
    result = await db.execute(
        update(Notification)
        .where(
            Notification.id.in_(notification_ids),
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    logger.info("notifications_marked_read", user_id=user_id, count=result.rowcount)
    return result.rowcount


async def mark_all_read(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session="fetch")
    )
    await db.commit()
    logger.info("notifications_marked_all_read", user_id=user_id, count=result.rowcount)
    return result.rowcount
