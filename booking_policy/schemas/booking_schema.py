"""Booking and payment record models."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


# Statuses a booking may still be cancelled or rescheduled from.
OPEN_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.PENDING, BookingStatus.CONFIRMED}
)
FINAL_STATUSES: frozenset[BookingStatus] = frozenset(
    {BookingStatus.COMPLETED, BookingStatus.CANCELLED}
)


class Booking(BaseModel):
    """One scheduled service appointment."""
    id: str
    booking_number: str = ""
    status: BookingStatus = BookingStatus.CONFIRMED
    booking_date: date
    booking_time: time
    customer_id: str
    staff_id: Optional[str] = None
    hotel_id: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    final_price: Decimal = Decimal("0")
    service_name: str = ""
    reschedule_count: int = 0
    cancellation_reason: Optional[str] = None
    cancellation_id: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None


class PaymentRecord(BaseModel):
    """The successful charge a booking was paid with."""
    id: str
    booking_id: str
    provider_charge_ref: str
    amount: Decimal
    status: str = "successful"
