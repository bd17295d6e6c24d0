"""
Offline demo of the booking policy engine.

Seeds an in-memory store with a few bookings and runs the cancellation
check, cancellation and reschedule endpoints against them. No database,
no payment provider, no network calls.

Usage:
    python main.py                      # run every scenario
    python main.py --scenario cancel    # one scenario
    python main.py --locale en --hours 10
"""

import argparse
import asyncio
import json
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from booking_policy.config import settings
from booking_policy.policy.tiers import default_policy, require_valid_policy
from booking_policy.schemas.booking_schema import Booking, PaymentRecord, PaymentStatus
from booking_policy.service import ApiResponse, BookingPolicyService
from booking_policy.tools.booking_store import InMemoryBookingStore
from booking_policy.tools.channels import LoggingChannel, LoggingDocumentGenerator
from booking_policy.tools.payments import MockPaymentProvider
from booking_policy.tools.refund_ledger import InMemoryRefundLedger
from booking_policy.workflows.notifications import Channel

GREEN = "\033[92m"
YELLOW = "\033[93m"
RED = "\033[91m"
DIM = "\033[2m"
RESET = "\033[0m"
BOLD = "\033[1m"

SCENARIOS = ("check", "cancel", "late-cancel", "reschedule")


def _seed(store: InMemoryBookingStore, booking_id: str, hours_ahead: float, now: datetime) -> None:
    local = (now + timedelta(hours=hours_ahead)).astimezone(
        ZoneInfo(settings.policy.business_timezone)
    )
    booking = Booking(
        id=booking_id,
        booking_number=f"BK-{booking_id.upper()}",
        booking_date=local.date(),
        booking_time=local.time().replace(second=0, microsecond=0),
        customer_id="cus_demo",
        staff_id="staff_demo",
        hotel_id="hotel_demo",
        payment_status=PaymentStatus.PAID,
        final_price=Decimal("1000.00"),
        service_name="Thai Massage 90 min",
    )
    payment = PaymentRecord(
        id=f"pay_{booking_id}",
        booking_id=booking_id,
        provider_charge_ref=f"chrg_{booking_id}",
        amount=Decimal("1000.00"),
    )
    store.add(booking, payment)


def _build_service(hours: float, locale: str) -> BookingPolicyService:
    now = datetime.now(timezone.utc)
    store = InMemoryBookingStore()
    for booking_id, ahead in (("a1", hours), ("a2", 1.5), ("a3", 48)):
        _seed(store, booking_id, ahead, now)
    channels = {c.value: LoggingChannel(c.value) for c in Channel}
    return BookingPolicyService(
        store=store,
        ledger=InMemoryRefundLedger(),
        provider=MockPaymentProvider(),
        channels=channels,
        policy=require_valid_policy(default_policy()),
        documents=LoggingDocumentGenerator(),
        clock=lambda: now,
        locale=locale,
    )


def _show(title: str, response: ApiResponse) -> None:
    colour = GREEN if response.status_code == 200 else RED
    print(f"\n{BOLD}{title}{RESET} {colour}[{response.status_code}]{RESET}")
    print(f"{DIM}{json.dumps(response.body, indent=2, ensure_ascii=False)}{RESET}")


async def run_scenario(service: BookingPolicyService, scenario: str) -> None:
    if scenario == "check":
        _show("GET /bookings/a1/cancellation-check", await service.cancellation_check("a1"))
        _show("GET /bookings/a1/refund-preview", await service.refund_preview("a1"))
    elif scenario == "cancel":
        body = {"reason": "Customer changed plans", "refund_option": "auto"}
        _show("POST /bookings/a1/cancel", await service.cancel("a1", body))
        _show("POST /bookings/a1/cancel (again)", await service.cancel("a1", body))
    elif scenario == "late-cancel":
        body = {"reason": "Running late", "refund_option": "auto"}
        _show("POST /bookings/a2/cancel", await service.cancel("a2", body))
    elif scenario == "reschedule":
        booking = await service.store.get("a3")
        new_day = booking.booking_date + timedelta(days=1)
        body = {"new_date": new_day.isoformat(), "new_time": "14:00"}
        _show("POST /bookings/a3/reschedule", await service.reschedule("a3", body))
    await service.refunds.drain()


async def _run(args: argparse.Namespace) -> None:
    service = _build_service(args.hours, args.locale)
    scenarios = [args.scenario] if args.scenario else list(SCENARIOS)
    for scenario in scenarios:
        print(f"\n{YELLOW}=== {scenario} ==={RESET}")
        await run_scenario(service, scenario)


def main() -> None:
    parser = argparse.ArgumentParser(description="Offline booking policy demo")
    parser.add_argument("--scenario", choices=SCENARIOS, default=None,
                        help="Run a single scenario instead of all of them")
    parser.add_argument("--locale", choices=("th", "en"), default=settings.policy.locale,
                        help="Language for decision reasons")
    parser.add_argument("--hours", type=float, default=10.0,
                        help="Hours until the appointment used by the check/cancel scenarios")
    args = parser.parse_args()
    asyncio.run(_run(args))


if __name__ == "__main__":
    main()
