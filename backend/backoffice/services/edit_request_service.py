"""
Edit-permission handshake between a booking's owner and another staff member.

STATE MACHINE
=============

    absent --request_edit()--> pending --resolve(approved)--> approved
                                       \--resolve(rejected)--> rejected

  request_edit  caller must not own the booking (400), booking must exist
                (404). A second request while one is pending returns the
                pending one unchanged, so repeated clicks are harmless.
                Concurrent requests are settled by a partial unique index
                on (booking_id, requester_id) WHERE status = 'pending':
                the loser gets the winner's row.
  resolve       only the owner recorded on the request (403). The transition
                is a compare-and-swap: UPDATE ... WHERE status = 'pending'.
                If another resolution won the race, or the request was
                already resolved, nothing happens and the caller gets 409.

SIDE EFFECTS (a saga, each step commits on its own)
===================================================

  request_edit  request row -> `edit_request` notification to the owner
                (pushed as new-notification) -> `request_edit` activity
  approved      status -> editor set insertion -> `approve_edit` activity
                -> `edit_approved` notification to the requester (pushed as
                edit-permission-granted) -> booking-updated pushed to the
                requester and the booking topic
  rejected      status -> `reject_edit` activity -> `edit_rejected`
                notification (pushed as new-notification)

There is no compensating rollback: if a later step fails, earlier steps stay
committed and the error is returned to the caller.
"""

from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.logging import get_logger
from backoffice.core.metrics import record_edit_transition
from backoffice.core.security import CurrentUser
from backoffice.db.base import utcnow
from backoffice.models.activity import ActivityAction
from backoffice.models.booking import Booking
from backoffice.models.edit_request import BookingEditRequest, EditRequestStatus
from backoffice.models.notification import NotificationType
from backoffice.realtime.broker import RealtimeBroker
from backoffice.realtime.topics import RealtimeEvent, booking_topic, user_topic
from backoffice.schemas.activity import RequestEditDetails, ResolveEditDetails
from backoffice.services.activity_service import record_activity
from backoffice.services.booking_service import add_approved_editor, booking_document, get_booking
from backoffice.services.notification_service import notify

logger = get_logger(__name__)


async def find_pending_request(
    db: AsyncSession,
    booking_id: str,
    requester_id: str,
) -> Optional[BookingEditRequest]:
    result = await db.execute(
        select(BookingEditRequest)
        .where(
            BookingEditRequest.booking_id == booking_id,
            BookingEditRequest.requester_id == requester_id,
            BookingEditRequest.status == EditRequestStatus.PENDING.value,
        )
        .order_by(BookingEditRequest.created_at.asc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def request_edit(
    db: AsyncSession,
    broker: RealtimeBroker,
    booking_id: str,
    user: CurrentUser,
    reason: Optional[str] = None,
) -> tuple[BookingEditRequest, bool]:
    """
    Ask the owner of `booking_id` for edit rights.

    Returns (request, created). `created` is False when an existing pending
    request was returned instead.
    """
    booking = await get_booking(db, booking_id)

    if booking.user_id == user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You already own this booking",
        )

    existing = await find_pending_request(db, booking_id, user.id)
    if existing:
        record_edit_transition("duplicate")
        logger.info("edit_request_exists", request_id=existing.id, booking_id=booking_id, requester_id=user.id)
        return existing, False

    edit_request = BookingEditRequest(
        booking_id=booking_id,
        requester_id=user.id,
        owner_id=booking.user_id,
        status=EditRequestStatus.PENDING.value,
        reason=reason,
    )
    db.add(edit_request)
    try:
        await db.flush()
    except IntegrityError:
        # A concurrent request from the same user won the unique pending index
        await db.rollback()
        existing = await find_pending_request(db, booking_id, user.id)
        if existing is None:
            raise
        record_edit_transition("duplicate")
        logger.info("edit_request_race_lost", request_id=existing.id, booking_id=booking_id, requester_id=user.id)
        return existing, False
    await db.refresh(edit_request)
    await db.commit()

    record_edit_transition("created")
    logger.info(
        "edit_request_created",
        request_id=edit_request.id,
        booking_id=booking_id,
        requester_id=user.id,
        owner_id=booking.user_id,
    )

    await notify(
        db, broker,
        user_id=booking.user_id,
        type=NotificationType.EDIT_REQUEST,
        title="Edit Request",
        message=f"{user.name} requested to edit booking {booking_id}",
        booking_id=booking_id,
        edit_request_id=edit_request.id,
        requester_id=user.id,
        requester_name=user.name,
        metadata={"reason": reason},
    )

    await record_activity(
        db, booking_id, user.id, ActivityAction.REQUEST_EDIT,
        RequestEditDetails(request_id=edit_request.id, reason=reason),
    )
    await db.commit()

    return edit_request, True


async def get_edit_request(db: AsyncSession, request_id: str) -> BookingEditRequest:
    edit_request = await db.get(BookingEditRequest, request_id)
    if not edit_request:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Request not found",
        )
    return edit_request


async def resolve_edit_request(
    db: AsyncSession,
    broker: RealtimeBroker,
    request_id: str,
    user: CurrentUser,
    action: str,
) -> BookingEditRequest:
    """Approve or reject a pending request. Only its recorded owner may do this."""
    try:
        new_status = EditRequestStatus(action)
    except ValueError:
        new_status = EditRequestStatus.PENDING
    if new_status == EditRequestStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Action must be 'approved' or 'rejected'",
        )

    edit_request = await get_edit_request(db, request_id)

    if edit_request.owner_id != user.id:
        logger.warning(
            "edit_request_resolve_forbidden",
            request_id=request_id,
            user_id=user.id,
            owner_id=edit_request.owner_id,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden",
        )

    # Compare-and-swap: only a pending request can be resolved
    swapped = await db.execute(
        update(BookingEditRequest)
        .where(
            BookingEditRequest.id == request_id,
            BookingEditRequest.status == EditRequestStatus.PENDING.value,
        )
        .values(status=new_status.value, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if swapped.rowcount == 0:
        await db.refresh(edit_request)
        record_edit_transition("conflict")
        logger.warning("edit_request_already_resolved", request_id=request_id, status=edit_request.status)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Edit request is already {edit_request.status}",
        )
    await db.commit()
    await db.refresh(edit_request)

    record_edit_transition(new_status.value)
    logger.info(
        "edit_request_resolved",
        request_id=request_id,
        booking_id=edit_request.booking_id,
        requester_id=edit_request.requester_id,
        status=new_status.value,
    )

    if new_status == EditRequestStatus.APPROVED:
        await _grant(db, broker, edit_request, user)
    else:
        await _reject(db, broker, edit_request, user)

    return edit_request


async def _grant(
    db: AsyncSession,
    broker: RealtimeBroker,
    edit_request: BookingEditRequest,
    user: CurrentUser,
) -> None:
    booking = await db.get(Booking, edit_request.booking_id)
    if booking is None:
        logger.warning("edit_request_booking_missing", request_id=edit_request.id, booking_id=edit_request.booking_id)
    else:
        await add_approved_editor(db, booking, edit_request.requester_id)

    await record_activity(
        db, edit_request.booking_id, user.id, ActivityAction.APPROVE_EDIT,
        ResolveEditDetails(
            kind=ActivityAction.APPROVE_EDIT.value,
            request_id=edit_request.id,
            requester_id=edit_request.requester_id,
        ),
    )
    await db.commit()

    await notify(
        db, broker,
        user_id=edit_request.requester_id,
        type=NotificationType.EDIT_APPROVED,
        title="Edit Request Approved",
        message=f"{user.name} approved your edit request for booking {edit_request.booking_id}",
        booking_id=edit_request.booking_id,
        edit_request_id=edit_request.id,
        requester_id=user.id,
        requester_name=user.name,
        realtime_event=RealtimeEvent.EDIT_PERMISSION_GRANTED,
    )

    if booking is not None:
        document = booking_document(booking)
        broker.publish(user_topic(edit_request.requester_id), RealtimeEvent.BOOKING_UPDATED, document)
        broker.publish(booking_topic(booking.id), RealtimeEvent.BOOKING_UPDATED, document)


async def _reject(
    db: AsyncSession,
    broker: RealtimeBroker,
    edit_request: BookingEditRequest,
    user: CurrentUser,
) -> None:
    await record_activity(
        db, edit_request.booking_id, user.id, ActivityAction.REJECT_EDIT,
        ResolveEditDetails(
            kind=ActivityAction.REJECT_EDIT.value,
            request_id=edit_request.id,
            requester_id=edit_request.requester_id,
        ),
    )
    await db.commit()

    await notify(
        db, broker,
        user_id=edit_request.requester_id,
        type=NotificationType.EDIT_REJECTED,
        title="Edit Request Rejected",
        message=f"{user.name} rejected your edit request for booking {edit_request.booking_id}",
        booking_id=edit_request.booking_id,
        edit_request_id=edit_request.id,
        requester_id=user.id,
        requester_name=user.name,
    )


async def list_booking_requests(
    db: AsyncSession,
    booking_id: str,
    user: CurrentUser,
) -> list[BookingEditRequest]:
    """Requests on one booking: all of them for the owner, the caller's own otherwise."""
    booking = await get_booking(db, booking_id)

    query = select(BookingEditRequest).where(BookingEditRequest.booking_id == booking_id)
    if booking.user_id != user.id:
        query = query.where(BookingEditRequest.requester_id == user.id)

    result = await db.execute(query.order_by(BookingEditRequest.created_at.desc()))
    return list(result.scalars().all())


async def list_incoming_requests(
    db: AsyncSession,
    user: CurrentUser,
    request_status: Optional[str] = None,
) -> list[BookingEditRequest]:
    """Requests addressed to the caller as booking owner, newest first."""
    query = select(BookingEditRequest).where(BookingEditRequest.owner_id == user.id)
    if request_status:
        query = query.where(BookingEditRequest.status == request_status)

    result = await db.execute(query.order_by(BookingEditRequest.created_at.desc()))
    return list(result.scalars().all())
