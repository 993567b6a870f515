"""
Edit-permission handshake endpoints.

Registered before the booking routes so `/bookings/edit-requests` is not
taken for a booking id.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.db.session import get_db
from backoffice.core.security import CurrentUser, get_current_user
from backoffice.models.edit_request import EditRequestStatus
from backoffice.realtime.broker import RealtimeBroker, get_broker
from backoffice.schemas.edit_request import EditRequestCreate, EditRequestResolve, EditRequestResponse
from backoffice.services.edit_request_service import (
    list_booking_requests, list_incoming_requests, request_edit, resolve_edit_request,
)

router = APIRouter(prefix="/bookings", tags=["Edit Requests"])


@router.get("/edit-requests", response_model=list[EditRequestResponse])
async def list_incoming_requests_endpoint(
    request_status: Optional[EditRequestStatus] = Query(None, alias="status"),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Edit requests waiting on (or resolved by) the caller as booking owner."""
    return await list_incoming_requests(db, user, request_status.value if request_status else None)


@router.put("/edit-requests/{request_id}", response_model=EditRequestResponse)
async def resolve_edit_request_endpoint(
    request_id: str,
    payload: EditRequestResolve,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broker: RealtimeBroker = Depends(get_broker),
):
    """
    Approve or reject a pending request.
    403 unless the caller owns the booking, 409 if it was already resolved.
    """
    return await resolve_edit_request(db, broker, request_id, user, payload.action)


@router.post(
    "/{booking_id}/edit-requests",
    response_model=EditRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={200: {"description": "A pending request already existed and is returned unchanged"}},
)
async def request_edit_endpoint(
    booking_id: str,
    response: Response,
    payload: Optional[EditRequestCreate] = Body(None),
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    broker: RealtimeBroker = Depends(get_broker),
):
    """Ask the booking owner for edit access. Safe to repeat while pending."""
    reason = payload.reason if payload else None
    edit_request, created = await request_edit(db, broker, booking_id, user, reason)
    if not created:
        response.status_code = status.HTTP_200_OK
    return edit_request


@router.get("/{booking_id}/edit-requests", response_model=list[EditRequestResponse])
async def list_booking_requests_endpoint(
    booking_id: str,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Requests on a booking: all for its owner, only the caller's own for anyone else."""
    return await list_booking_requests(db, booking_id, user)
