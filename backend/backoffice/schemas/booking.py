"""
Pydantic schemas for booking request/response validation.
"""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from backoffice.models.booking import BookingStatus, BookingType, PaymentStatus
from backoffice.schemas.base import CamelModel


class Guests(CamelModel):
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    children_ages: list[int] = Field(default_factory=list)


class BookingDocument(CamelModel):
    name: str
    url: str
    type: Optional[str] = None
    size_bytes: Optional[int] = Field(None, ge=0)


class BookingFields(CamelModel):
    """Everything a caller may set on a booking, all optional."""

    customer_name: Optional[str] = Field(None, min_length=1, max_length=255)
    customer_email: Optional[EmailStr] = None
    customer_phone: Optional[str] = Field(None, min_length=1, max_length=50)
    type: Optional[BookingType] = None
    hotel_name: Optional[str] = None
    flight_number: Optional[str] = None
    package_name: Optional[str] = None
    travel_date: Optional[datetime] = None
    destinations: Optional[list[str]] = None
    hotel_or_resort: Optional[str] = None
    number_of_clients: Optional[int] = Field(None, ge=0)
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    flight_date: Optional[datetime] = None
    guests: Optional[Guests] = None
    rooms: Optional[int] = Field(None, ge=1)
    activities: Optional[list[str]] = None
    other_services: Optional[str] = None
    costs: Optional[float] = Field(None, ge=0)
    total_amount: Optional[float] = Field(None, ge=0)
    amount_paid: Optional[float] = Field(None, ge=0)
    date_paid: Optional[datetime] = None
    payment_method: Optional[str] = None
    balance: Optional[float] = None
    payment_due_date: Optional[datetime] = None
    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None
    documents: Optional[list[BookingDocument]] = None
    notes: Optional[str] = None


class BookingCreate(BookingFields):
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: EmailStr
    customer_phone: str = Field(..., min_length=1, max_length=50)
    type: BookingType
    total_amount: float = Field(..., ge=0)
    status: BookingStatus = Field(default=BookingStatus.PENDING, validate_default=True)
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING, validate_default=True)


class BookingUpdate(BookingFields):
    """Partial update. Ownership and editor fields are not writable here."""


class BookingResponse(CamelModel):
    id: str
    user_id: str
    owner_name: Optional[str] = None
    approved_editors: list[str] = Field(default_factory=list)
    customer_name: str
    customer_email: str
    customer_phone: str
    type: BookingType
    hotel_name: Optional[str] = None
    flight_number: Optional[str] = None
    package_name: Optional[str] = None
    travel_date: Optional[datetime] = None
    destinations: list[str] = Field(default_factory=list)
    hotel_or_resort: Optional[str] = None
    number_of_clients: Optional[int] = None
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    flight_date: Optional[datetime] = None
    guests: Optional[Guests] = None
    rooms: Optional[int] = None
    activities: list[str] = Field(default_factory=list)
    other_services: Optional[str] = None
    costs: Optional[float] = None
    total_amount: float
    amount_paid: float = 0
    date_paid: Optional[datetime] = None
    payment_method: Optional[str] = None
    balance: Optional[float] = None
    payment_due_date: Optional[datetime] = None
    status: BookingStatus
    payment_status: PaymentStatus
    documents: list[BookingDocument] = Field(default_factory=list)
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    # Advisory: computed for the caller, the write path re-checks
    can_edit: bool = False


class BookingDeleteResponse(CamelModel):
    message: str
    booking_id: str
