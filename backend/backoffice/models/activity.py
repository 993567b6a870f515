"""
Append-only audit trail of what happened to a booking and who did it.
"""

import enum

from sqlalchemy import JSON, CheckConstraint, Column, Integer, String

from backoffice.db.base import Base, TimestampMixin


class ActivityAction(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    REQUEST_EDIT = "request_edit"
    APPROVE_EDIT = "approve_edit"
    REJECT_EDIT = "reject_edit"


class BookingActivity(Base, TimestampMixin):
    __tablename__ = "booking_activities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(String(36), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    action = Column(String(20), nullable=False)
    details = Column(JSON, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "action IN ('create', 'update', 'delete', 'request_edit', 'approve_edit', 'reject_edit')",
            name="check_activity_action",
        ),
    )

    def __repr__(self) -> str:
        return f"<BookingActivity(booking={self.booking_id}, user={self.user_id}, action={self.action})>"
