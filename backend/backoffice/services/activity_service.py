"""
Append-only booking audit trail.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.models.activity import ActivityAction, BookingActivity
from backoffice.schemas.activity import ActivityDetails
from backoffice.core.logging import get_logger

logger = get_logger(__name__)


async def record_activity(
    db: AsyncSession,
    booking_id: str,
    user_id: str,
    action: ActivityAction,
    details: ActivityDetails,
) -> BookingActivity:
    """Add an activity row to the session. The caller commits."""
    action_value = ActivityAction(action).value
    if details.kind != action_value:
        raise ValueError(f"Activity details of kind {details.kind!r} do not match action {action_value!r}")

    activity = BookingActivity(
        booking_id=booking_id,
        user_id=user_id,
        action=action_value,
        details=details.model_dump(mode="json", by_alias=True, exclude_none=True),
    )
    db.add(activity)
    await db.flush()
    logger.debug("activity_recorded", booking_id=booking_id, user_id=user_id, action=action_value)
    return activity


async def list_activities(db: AsyncSession, booking_id: str) -> list[BookingActivity]:
    """Activities of a booking, newest first. Still readable after the booking is deleted."""
    result = await db.execute(
        select(BookingActivity)
        .where(BookingActivity.booking_id == booking_id)
        .order_by(BookingActivity.created_at.desc(), BookingActivity.id.desc())
    )
    return list(result.scalars().all())
