"""
Booking store: create, read, mutate and delete bookings.

ACCESS RULES
============

  read    any authenticated user (responses carry an advisory `canEdit`)
  update  owner or approved editor, otherwise 403 + needsApproval
  delete  owner only

Approved editors are granted exclusively through the edit-request workflow,
via `add_approved_editor`. That insert is a set insertion on the unique
(booking_id, user_id) pair, so concurrent or repeated approvals cannot
create duplicates. Concurrent updates by the owner and an editor are
last-write-wins; there is no version column.

Every committed mutation is followed by a realtime push (global topic and
the booking's topic). The push cannot fail the mutation.
"""

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.logging import get_logger
from backoffice.core.metrics import record_booking_mutation
from backoffice.core.security import CurrentUser
from backoffice.models.activity import ActivityAction
from backoffice.models.booking import Booking, BookingEditor
from backoffice.realtime.broker import RealtimeBroker
from backoffice.realtime.topics import GLOBAL_TOPIC, RealtimeEvent, booking_topic
from backoffice.schemas.activity import CreateDetails, DeleteDetails, UpdateDetails
from backoffice.schemas.booking import BookingCreate, BookingResponse, BookingUpdate
from backoffice.services.access import can_edit, require_editor, require_owner
from backoffice.services.activity_service import record_activity

logger = get_logger(__name__)

# Columns that may not be cleared by an update
NON_NULLABLE_FIELDS = {
    "customer_name", "customer_email", "customer_phone", "type",
    "total_amount", "amount_paid", "status", "payment_status",
    "destinations", "guests", "activities", "documents",
}


def to_response(booking: Booking, user_id: Optional[str] = None) -> BookingResponse:
    """Serialize a booking, with `can_edit` evaluated for `user_id`."""
    response = BookingResponse.model_validate(booking)
    if user_id is not None:
        response.can_edit = can_edit(booking, user_id)
    return response


def booking_document(booking: Booking) -> dict:
    """Caller-neutral wire form used as realtime payload."""
    return BookingResponse.model_validate(booking).model_dump(
        mode="json", by_alias=True, exclude={"can_edit"}
    )


def broadcast_booking(broker: RealtimeBroker, event: RealtimeEvent, booking_id: str, payload: dict) -> None:
    broker.publish(GLOBAL_TOPIC, event, payload)
    broker.publish(booking_topic(booking_id), event, payload)


async def get_booking(db: AsyncSession, booking_id: str) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()

    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
        )
    return booking


async def list_bookings(
    db: AsyncSession,
    booking_type: Optional[str] = None,
    booking_status: Optional[str] = None,
) -> list[Booking]:
    """All bookings, newest first. Every authenticated user sees every booking."""
    query = select(Booking)
    if booking_type:
        query = query.where(Booking.type == booking_type)
    if booking_status:
        query = query.where(Booking.status == booking_status)

    result = await db.execute(query.order_by(Booking.created_at.desc()))
    return list(result.scalars().all())


async def create_booking(
    db: AsyncSession,
    broker: RealtimeBroker,
    data: BookingCreate,
    user: CurrentUser,
) -> Booking:
    """Create a booking owned by the caller."""
    fields = data.model_dump(exclude_none=True)
    booking = Booking(**fields, user_id=user.id, owner_name=user.name)
    booking.editors = []
    db.add(booking)
    await db.flush()
    await db.refresh(booking)

    await record_activity(
        db, booking.id, user.id, ActivityAction.CREATE,
        CreateDetails(fields=data.model_dump(mode="json", by_alias=True, exclude_none=True)),
    )
    await db.commit()

    record_booking_mutation("create", "success")
    logger.info("booking_created", booking_id=booking.id, user_id=user.id, type=booking.type)

    broker.publish(GLOBAL_TOPIC, RealtimeEvent.BOOKING_CREATED, booking_document(booking))
    return booking


async def update_booking(
    db: AsyncSession,
    broker: RealtimeBroker,
    booking_id: str,
    data: BookingUpdate,
    user: CurrentUser,
) -> Booking:
    """Apply a partial update. Authoritative check of the access predicate."""
    booking = await get_booking(db, booking_id)

    try:
        require_editor(booking, user)
    except HTTPException:
        record_booking_mutation("update", "forbidden")
        logger.warning(
            "booking_update_forbidden",
            booking_id=booking_id,
            user_id=user.id,
            owner_id=booking.user_id,
        )
        raise

    changes = data.model_dump(exclude_unset=True)
    cleared = sorted(k for k, v in changes.items() if v is None and k in NON_NULLABLE_FIELDS)
    if cleared:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Fields cannot be cleared: {', '.join(cleared)}",
        )

    for field, value in changes.items():
        setattr(booking, field, value)
    await db.flush()
    await db.refresh(booking)

    await record_activity(
        db, booking.id, user.id, ActivityAction.UPDATE,
        UpdateDetails(changes=data.model_dump(mode="json", by_alias=True, exclude_unset=True)),
    )
    await db.commit()

    record_booking_mutation("update", "success")
    logger.info(
        "booking_updated",
        booking_id=booking.id,
        user_id=user.id,
        as_owner=booking.user_id == user.id,
        fields=sorted(changes),
    )

    broadcast_booking(broker, RealtimeEvent.BOOKING_UPDATED, booking.id, booking_document(booking))
    return booking


async def delete_booking(
    db: AsyncSession,
    broker: RealtimeBroker,
    booking_id: str,
    user: CurrentUser,
) -> None:
    """
    Delete a booking. Owner only.
    Edit requests and notifications that reference it are left in place.
    """
    booking = await get_booking(db, booking_id)

    try:
        require_owner(booking, user, action="delete")
    except HTTPException:
        record_booking_mutation("delete", "forbidden")
        raise

    customer_name = booking.customer_name
    await db.delete(booking)
    await record_activity(
        db, booking_id, user.id, ActivityAction.DELETE,
        DeleteDetails(customer_name=customer_name),
    )
    await db.commit()

    record_booking_mutation("delete", "success")
    logger.info("booking_deleted", booking_id=booking_id, user_id=user.id)

    broadcast_booking(broker, RealtimeEvent.BOOKING_DELETED, booking_id, {"id": booking_id})


async def add_approved_editor(db: AsyncSession, booking: Booking, user_id: str) -> bool:
    """
    Grant `user_id` edit rights on `booking` with set semantics.

    Returns True if the user was added, False if already present (or the
    owner). The caller commits.
    """
    if user_id == booking.user_id:
        return False

    dialect = db.get_bind().dialect.name
    if dialect in ("postgresql", "sqlite"):
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        result = await db.execute(
            insert(BookingEditor.__table__)
            .values(booking_id=booking.id, user_id=user_id)
            .on_conflict_do_nothing(index_elements=["booking_id", "user_id"])
        )
        added = result.rowcount == 1
    else:
        existing = await db.execute(
            select(BookingEditor.id).where(
                BookingEditor.booking_id == booking.id,
                BookingEditor.user_id == user_id,
            )
        )
        added = existing.scalar_one_or_none() is None
        if added:
            db.add(BookingEditor(booking_id=booking.id, user_id=user_id))
            await db.flush()

    await db.refresh(booking, attribute_names=["editors"])
    logger.info("booking_editor_granted", booking_id=booking.id, user_id=user_id, added=added)
    return added
