"""Shared test fixtures and helpers."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from booking_policy.policy.state_machine import WorkflowStateMachine
from booking_policy.schemas.booking_schema import (
    Booking,
    BookingStatus,
    PaymentRecord,
    PaymentStatus,
)
from booking_policy.schemas.policy_schema import CancellationPolicy, PolicySettings, PolicyTier
from booking_policy.tools.booking_store import InMemoryBookingStore
from booking_policy.tools.channels import LoggingChannel, LoggingDocumentGenerator
from booking_policy.tools.payments import MockPaymentProvider
from booking_policy.tools.refund_ledger import InMemoryRefundLedger
from booking_policy.workflows.notifications import Channel

TZ = "Asia/Bangkok"
# 2025-03-15 10:00 in Bangkok.
NOW = datetime(2025, 3, 15, 3, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


def make_policy(max_reschedules: int = 2, processing_days: int = 5) -> CancellationPolicy:
    """The three-tier table used throughout: <3h locked, 3-24h half, 24h+ full."""
    return CancellationPolicy(
        settings=PolicySettings(
            max_reschedules_per_booking=max_reschedules,
            refund_processing_days=processing_days,
        ),
        tiers=(
            PolicyTier(min_hours_before=0, max_hours_before=3, can_cancel=False,
                       can_reschedule=False, refund_percentage=0,
                       label_en="Under 3 hours", sort_order=1),
            PolicyTier(min_hours_before=3, max_hours_before=24, can_cancel=True,
                       can_reschedule=True, refund_percentage=50,
                       reschedule_fee=Decimal("100"), label_en="3-24 hours", sort_order=2),
            PolicyTier(min_hours_before=24, max_hours_before=None, can_cancel=True,
                       can_reschedule=True, refund_percentage=100,
                       label_en="24+ hours", sort_order=3),
        ),
    )


def make_booking(
    booking_id: str = "bk-1",
    hours_ahead: float = 48,
    status: BookingStatus = BookingStatus.CONFIRMED,
    payment_status: PaymentStatus = PaymentStatus.PAID,
    price: str = "1000.00",
    staff_id: Optional[str] = "staff-1",
    hotel_id: Optional[str] = None,
    reschedule_count: int = 0,
) -> Booking:
    """Booking whose slot is ``hours_ahead`` hours after NOW, in Bangkok time."""
    local = (NOW + timedelta(hours=hours_ahead)).astimezone(ZoneInfo(TZ))
    return Booking(
        id=booking_id,
        booking_number=f"BK-{booking_id}",
        status=status,
        booking_date=local.date(),
        booking_time=local.time(),
        customer_id="cus-1",
        staff_id=staff_id,
        hotel_id=hotel_id,
        payment_status=payment_status,
        final_price=Decimal(price),
        service_name="Thai Massage",
        reschedule_count=reschedule_count,
    )


def make_payment(booking: Booking, amount: Optional[str] = None) -> PaymentRecord:
    return PaymentRecord(
        id=f"pay-{booking.id}",
        booking_id=booking.id,
        provider_charge_ref=f"chrg-{booking.id}",
        amount=Decimal(amount) if amount is not None else booking.final_price,
    )


class FailingChannel:
    """Channel that raises on every send."""

    def __init__(self) -> None:
        self.calls = 0

    async def send(self, event, payload) -> bool:
        self.calls += 1
        raise RuntimeError("channel down")


class RaisingProvider(MockPaymentProvider):
    """Provider whose refund call raises instead of returning a failure."""

    async def refund(self, provider_charge_ref, amount_minor, idempotency_key):
        raise ConnectionError("provider unreachable")


@pytest.fixture
def policy():
    return make_policy()


@pytest.fixture
def store():
    return InMemoryBookingStore()


@pytest.fixture
def ledger():
    return InMemoryRefundLedger()


@pytest.fixture
def provider():
    return MockPaymentProvider()


@pytest.fixture
def documents():
    return LoggingDocumentGenerator()


@pytest.fixture
def channels():
    return {c.value: LoggingChannel(c.value) for c in Channel}


@pytest.fixture
def workflow_state():
    return WorkflowStateMachine()
