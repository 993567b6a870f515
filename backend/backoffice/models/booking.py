"""
Booking model: a hotel, flight or package reservation handled by the agency.

Key design decisions:
- `user_id` is the owner (the staff member who created the booking)
- Approved editors live in `booking_editors`, one row per (booking, user).
  The unique constraint makes granting access a set insertion, so repeating
  an approval never produces duplicates.
- Type-specific and nested fields (guests, destinations, documents) are JSON
  columns; they are validated by the pydantic schemas, not the database.
"""

import enum

from sqlalchemy import (
    JSON, CheckConstraint, Column, DateTime, Float, ForeignKey, Integer, String, Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from backoffice.db.base import Base, TimestampMixin, new_id


class BookingType(str, enum.Enum):
    HOTEL = "hotel"
    FLIGHT = "flight"
    PACKAGE = "package"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(255), nullable=False, index=True)
    owner_name = Column(String(255), nullable=True)

    # Customer
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)

    # Type discriminator and type-specific fields
    type = Column(String(20), nullable=False)
    hotel_name = Column(String(255), nullable=True)
    flight_number = Column(String(50), nullable=True)
    package_name = Column(String(255), nullable=True)

    # Travel details
    travel_date = Column(DateTime(timezone=True), nullable=True)
    destinations = Column(JSON, nullable=False, default=list)
    hotel_or_resort = Column(String(255), nullable=True)
    number_of_clients = Column(Integer, nullable=True)
    check_in = Column(DateTime(timezone=True), nullable=True)
    check_out = Column(DateTime(timezone=True), nullable=True)
    flight_date = Column(DateTime(timezone=True), nullable=True)
    guests = Column(JSON, nullable=False, default=lambda: {"adults": 1, "children": 0, "children_ages": []})
    rooms = Column(Integer, nullable=True)
    activities = Column(JSON, nullable=False, default=list)
    other_services = Column(Text, nullable=True)

    # Payments
    costs = Column(Float, nullable=True)
    total_amount = Column(Float, nullable=False)
    amount_paid = Column(Float, nullable=False, default=0)
    date_paid = Column(DateTime(timezone=True), nullable=True)
    payment_method = Column(String(50), nullable=True)
    balance = Column(Float, nullable=True)
    payment_due_date = Column(DateTime(timezone=True), nullable=True)

    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    documents = Column(JSON, nullable=False, default=list)
    notes = Column(Text, nullable=True)

    editors = relationship(
        "BookingEditor",
        back_populates="booking",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="BookingEditor.created_at",
    )

    __table_args__ = (
        CheckConstraint("type IN ('hotel', 'flight', 'package')", name="check_booking_type"),
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'failed')",
            name="check_booking_payment_status",
        ),
        CheckConstraint("total_amount >= 0", name="check_booking_total_non_negative"),
    )

    @property
    def approved_editors(self) -> list[str]:
        return [editor.user_id for editor in self.editors]

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, owner={self.user_id}, type={self.type}, status={self.status})>"


class BookingEditor(Base, TimestampMixin):
    """A user granted edit rights on a booking they do not own."""

    __tablename__ = "booking_editors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)

    booking = relationship("Booking", back_populates="editors")

    __table_args__ = (
        UniqueConstraint("booking_id", "user_id", name="uq_booking_editor"),
    )

    def __repr__(self) -> str:
        return f"<BookingEditor(booking={self.booking_id}, user={self.user_id})>"
