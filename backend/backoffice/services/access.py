"""
Who may change a booking.

`can_edit` is the single rule used everywhere: the API computes the advisory
`canEdit` flag with it on the read path, and the write path enforces it
before touching the row.
"""

from fastapi import HTTPException, status

from backoffice.core.exceptions import forbidden_needs_approval
from backoffice.core.security import CurrentUser
from backoffice.models.booking import Booking


def can_edit(booking: Booking, user_id: str) -> bool:
    return user_id == booking.user_id or user_id in booking.approved_editors


def is_owner(booking: Booking, user_id: str) -> bool:
    return user_id == booking.user_id


def require_editor(booking: Booking, user: CurrentUser) -> None:
    """Raise 403 with `needsApproval` so the caller can offer an edit request."""
    if not can_edit(booking, user.id):
        raise forbidden_needs_approval()


def require_owner(booking: Booking, user: CurrentUser, action: str = "modify") -> None:
    if not is_owner(booking, user.id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only the booking owner can {action} this booking",
        )
