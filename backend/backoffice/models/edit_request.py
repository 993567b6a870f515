"""
Edit request: a non-owner asking the owner for edit rights on a booking.

Key design decisions:
- `owner_id` is copied from the booking when the request is created, so
  authorization of the resolution never depends on re-reading the booking
- Resolution is a compare-and-swap on `status` (pending -> approved/rejected),
  so terminal rows are never rewritten
- `booking_id` is a plain reference without a foreign key: requests outlive
  a deleted booking and are simply inert afterwards
"""

import enum

from sqlalchemy import CheckConstraint, Column, Index, String, Text, text

from backoffice.db.base import Base, TimestampMixin, new_id


class EditRequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class BookingEditRequest(Base, TimestampMixin):
    __tablename__ = "booking_edit_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    booking_id = Column(String(36), nullable=False, index=True)
    requester_id = Column(String(255), nullable=False, index=True)
    owner_id = Column(String(255), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=EditRequestStatus.PENDING.value)
    reason = Column(Text, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="check_edit_request_status",
        ),
        # Lookup for "is there already a pending request from this user?"
        Index("ix_edit_requests_booking_requester_status", "booking_id", "requester_id", "status"),
        # At most one pending request per (booking, requester), even under concurrent requests
        Index(
            "uq_edit_requests_one_pending",
            "booking_id", "requester_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<BookingEditRequest(id={self.id}, booking={self.booking_id}, "
            f"requester={self.requester_id}, status={self.status})>"
        )
