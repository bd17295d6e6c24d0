"""
In-memory booking store.

In production this is the hosted Postgres backend. Both writes are
conditional: the status update maps to ``UPDATE bookings SET status = ...
WHERE id = ... AND status IN (...)`` and the schedule update adds
``AND reschedule_count = ...``. The row count tells the caller whether it
won the race.
"""

import asyncio
import logging
from datetime import date, time
from typing import Any, Iterable, Optional

from booking_policy.schemas.booking_schema import (
    Booking,
    BookingStatus,
    PaymentRecord,
    PaymentStatus,
)

logger = logging.getLogger(__name__)


class InMemoryBookingStore:
    """Dict-backed BookingStore. Returns copies so callers cannot mutate rows."""

    def __init__(self) -> None:
        self._bookings: dict[str, Booking] = {}
        self._payments: dict[str, PaymentRecord] = {}

    def add(self, booking: Booking, payment: Optional[PaymentRecord] = None) -> Booking:
        self._bookings[booking.id] = booking.model_copy(deep=True)
        if payment is not None:
            self._payments[booking.id] = payment
        return booking

    async def get(self, booking_id: str) -> Optional[Booking]:
        # Yield like a real network round-trip so concurrent requests interleave.
        await asyncio.sleep(0)
        booking = self._bookings.get(booking_id)
        return booking.model_copy(deep=True) if booking else None

    async def conditional_update_status(
        self,
        booking_id: str,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
        extra_fields: Optional[dict[str, Any]] = None,
    ) -> bool:
        await asyncio.sleep(0)
        booking = self._bookings.get(booking_id)
        if booking is None or booking.status not in set(from_statuses):
            logger.info(
                "Conditional update matched no row: %s (wanted %s)",
                booking_id, [s.value for s in from_statuses],
            )
            return False
        updates = dict(extra_fields or {})
        updates["status"] = to_status
        self._bookings[booking_id] = booking.model_copy(update=updates)
        logger.info("Booking %s status -> %s", booking_id, to_status.value)
        return True

    async def update_schedule(
        self,
        booking_id: str,
        new_date: date,
        new_time: time,
        clear_staff: bool,
        from_statuses: Iterable[BookingStatus],
        expected_reschedule_count: Optional[int] = None,
    ) -> Optional[Booking]:
        await asyncio.sleep(0)
        booking = self._bookings.get(booking_id)
        if booking is None or booking.status not in set(from_statuses):
            logger.info("Schedule update matched no row: %s", booking_id)
            return None
        if (
            expected_reschedule_count is not None
            and booking.reschedule_count != expected_reschedule_count
        ):
            logger.info(
                "Schedule update for %s lost a race (reschedule_count %d, expected %d)",
                booking_id, booking.reschedule_count, expected_reschedule_count,
            )
            return None
        updates: dict[str, Any] = {
            "booking_date": new_date,
            "booking_time": new_time,
            "reschedule_count": booking.reschedule_count + 1,
        }
        if clear_staff:
            updates["staff_id"] = None
        updated = booking.model_copy(update=updates)
        self._bookings[booking_id] = updated
        logger.info("Booking %s rescheduled to %s %s", booking_id, new_date, new_time)
        return updated.model_copy(deep=True)

    async def update_payment_status(self, booking_id: str, status: PaymentStatus) -> None:
        booking = self._bookings.get(booking_id)
        if booking is not None:
            self._bookings[booking_id] = booking.model_copy(update={"payment_status": status})

    async def get_successful_payment(self, booking_id: str) -> Optional[PaymentRecord]:
        return self._payments.get(booking_id)

    def reset(self) -> None:
        """Clear all rows. Used by test fixtures for isolation."""
        self._bookings.clear()
        self._payments.clear()
