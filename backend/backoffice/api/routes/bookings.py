"""
Booking endpoints. Mutations are guarded by the edit-access predicate.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.db.session import get_db
from backoffice.core.security import CurrentUser, get_current_user
from backoffice.models.booking import BookingStatus, BookingType
from backoffice.realtime.broker import RealtimeBroker, get_broker
from backoffice.schemas.activity import ActivityResponse
from backoffice.schemas.booking import BookingCreate, BookingDeleteResponse, BookingResponse, BookingUpdate
from backoffice.services.activity_service import list_activities
from backoffice.services.booking_service import (
    create_booking, delete_booking, get_booking, list_bookings, to_response, update_booking,
)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_endpoint(
    booking_data: BookingCreate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broker: RealtimeBroker = Depends(get_broker),
):
    """Create a booking. The caller becomes its owner."""
    booking = await create_booking(db, broker, booking_data, user)
    return to_response(booking, user.id)


@router.get("", response_model=list[BookingResponse])
async def list_bookings_endpoint(
    booking_type: Optional[BookingType] = Query(None, alias="type"),
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """All bookings, newest first, each flagged with whether the caller can edit it."""
    bookings = await list_bookings(
        db,
        booking_type=booking_type.value if booking_type else None,
        booking_status=booking_status.value if booking_status else None,
    )
    return [to_response(b, user.id) for b in bookings]


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a single booking.
    `canEdit` tells the client whether to show the edit form or the
    "request edit access" action. The PUT endpoint re-checks it.
    """
    booking = await get_booking(db, booking_id)
    return to_response(booking, user.id)


@router.put("/{booking_id}", response_model=BookingResponse)
async def update_booking_endpoint(
    booking_id: str,
    booking_data: BookingUpdate,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broker: RealtimeBroker = Depends(get_broker),
):
    """Update a booking. Owner or approved editor only; 403 with needsApproval otherwise."""
    booking = await update_booking(db, broker, booking_id, booking_data, user)
    return to_response(booking, user.id)


@router.delete("/{booking_id}", response_model=BookingDeleteResponse)
async def delete_booking_endpoint(
    booking_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broker: RealtimeBroker = Depends(get_broker),
):
    """Delete a booking. Owner only."""
    await delete_booking(db, broker, booking_id, user)
    return BookingDeleteResponse(message="Booking deleted successfully", booking_id=booking_id)


@router.get("/{booking_id}/activities", response_model=list[ActivityResponse])
async def list_activities_endpoint(
    booking_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Audit trail of a booking, newest first."""
    return await list_activities(db, booking_id)
