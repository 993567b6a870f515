"""
Per-user notification produced by the edit-request workflow.
"""

import enum

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, Index, String, Text

from backoffice.db.base import Base, TimestampMixin, new_id


class NotificationType(str, enum.Enum):
    EDIT_REQUEST = "edit_request"
    EDIT_APPROVED = "edit_approved"
    EDIT_REJECTED = "edit_rejected"


class Notification(Base, TimestampMixin):
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(255), nullable=False, index=True)
    type = Column(String(30), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    booking_id = Column(String(36), nullable=False)
    edit_request_id = Column(String(36), nullable=True)
    requester_id = Column(String(255), nullable=True)
    requester_name = Column(String(255), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=False, default=dict)

    __table_args__ = (
        CheckConstraint(
            "type IN ('edit_request', 'edit_approved', 'edit_rejected')",
            name="check_notification_type",
        ),
        # Covers both the newest-first listing and "mark all unread as read"
        Index("ix_notifications_user_read_created", "user_id", "is_read", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, user={self.user_id}, type={self.type}, read={self.is_read})>"
