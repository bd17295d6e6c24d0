"""
Collaborator interfaces consumed by the policy engine.

Every external system (data store, payment processor, messaging channel,
document service) is injected into the workflows as one of these
protocols. In-memory implementations live in ``booking_policy.tools``.
Implementations are expected to bound their own I/O with a timeout; the
workflows add an outer ``asyncio.wait_for`` as well.
"""

from datetime import date, time
from typing import Any, Iterable, Optional, Protocol, runtime_checkable

from booking_policy.schemas.booking_schema import (
    Booking,
    BookingStatus,
    PaymentRecord,
    PaymentStatus,
)
from booking_policy.schemas.refund_schema import ProviderResult, RefundTransaction


@runtime_checkable
class BookingStore(Protocol):
    async def get(self, booking_id: str) -> Optional[Booking]: ...

    async def conditional_update_status(
        self,
        booking_id: str,
        from_statuses: Iterable[BookingStatus],
        to_status: BookingStatus,
        extra_fields: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Set the status only if the current status is in ``from_statuses``.

        Returns False when no row matched, which is how a concurrent
        second transition is detected.
        """
        ...

    async def update_schedule(
        self,
        booking_id: str,
        new_date: date,
        new_time: time,
        clear_staff: bool,
        from_statuses: Iterable[BookingStatus],
        expected_reschedule_count: Optional[int] = None,
    ) -> Optional[Booking]:
        """Move the booking only if its status is in ``from_statuses`` and,
        when given, its reschedule count still equals ``expected_reschedule_count``.

        Returns the updated booking, or None when no row matched.
        """
        ...

    async def update_payment_status(self, booking_id: str, status: PaymentStatus) -> None: ...

    async def get_successful_payment(self, booking_id: str) -> Optional[PaymentRecord]: ...


@runtime_checkable
class RefundLedger(Protocol):
    async def create(self, transaction: RefundTransaction) -> RefundTransaction: ...

    async def update(self, transaction: RefundTransaction) -> RefundTransaction: ...

    async def get(self, refund_transaction_id: str) -> Optional[RefundTransaction]: ...

    async def list_for_booking(self, booking_id: str) -> list[RefundTransaction]: ...


@runtime_checkable
class PaymentProvider(Protocol):
    async def refund(
        self, provider_charge_ref: str, amount_minor: int, idempotency_key: str
    ) -> ProviderResult: ...

    async def charge(
        self, customer_id: str, amount_minor: int, idempotency_key: str, description: str
    ) -> ProviderResult: ...


@runtime_checkable
class NotificationChannel(Protocol):
    async def send(self, event: str, payload: dict[str, Any]) -> bool: ...


@runtime_checkable
class DocumentGenerator(Protocol):
    async def generate_and_email_credit_note(self, refund_transaction_id: str) -> None: ...
