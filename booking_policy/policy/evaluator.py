"""
Eligibility evaluator: the single source of truth for cancel/reschedule rules.

Pure and deterministic. The read-only cancellation-check endpoint and both
workflows call ``evaluate`` so that what the customer is shown is exactly
what the workflow decides a moment later.

Usage:
    decision = evaluate(now, appointment_at, BookingStatus.CONFIRMED,
                        PaymentStatus.PAID, policy)
    if decision.can_cancel:
        ...
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from booking_policy.config import settings
from booking_policy.schemas.booking_schema import (
    FINAL_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
)
from booking_policy.schemas.policy_schema import (
    CancellationPolicy,
    EligibilityDecision,
    PolicyTier,
)
from booking_policy.utils import combine_local, hours_between

REASONS: dict[str, dict[str, str]] = {
    "finalized": {
        "th": "การจองนี้สิ้นสุดแล้ว ({status})",
        "en": "Booking already finalized ({status})",
    },
    "past": {
        "th": "เลยเวลานัดหมายแล้ว",
        "en": "Appointment time has already passed",
    },
    "no_tier": {
        "th": "ไม่พบเงื่อนไขนโยบายที่ตรงกับช่วงเวลานี้",
        "en": "No applicable policy, treat as outside window",
    },
    "cancel_blocked": {
        "th": "ไม่สามารถยกเลิกได้ในช่วงเวลานี้ ({label})",
        "en": "Cancellation is not permitted at this time ({label})",
    },
    "reschedule_blocked": {
        "th": "ไม่สามารถเลื่อนนัดได้ในช่วงเวลานี้ ({label})",
        "en": "Rescheduling is not permitted at this time ({label})",
    },
    "concurrent_change": {
        "th": "การจองถูกแก้ไขระหว่างดำเนินการ กรุณาลองใหม่อีกครั้ง",
        "en": "Booking was modified by another request, please try again",
    },
    "reschedule_limit": {
        "th": "เลื่อนนัดครบจำนวนสูงสุดแล้ว ({limit} ครั้ง)",
        "en": "Maximum number of reschedules reached ({limit})",
    },
}


def _reason(key: str, locale: str, **kwargs) -> str:
    messages = REASONS[key]
    return messages.get(locale, messages["en"]).format(**kwargs)


def find_tier(policy: CancellationPolicy, hours: float) -> Optional[PolicyTier]:
    """Return the first active tier whose range contains ``hours``."""
    for tier in policy.active_tiers():
        if tier.contains(hours):
            return tier
    return None


def evaluate(
    now: datetime,
    appointment_at: datetime,
    booking_status: BookingStatus,
    payment_status: PaymentStatus,
    policy: CancellationPolicy,
    reschedule_count: int = 0,
    locale: Optional[str] = None,
) -> EligibilityDecision:
    """Decide whether a booking may be cancelled or rescheduled right now.

    Args:
        now: Current instant (timezone-aware).
        appointment_at: Appointment start (timezone-aware).
        booking_status: Current booking status.
        payment_status: Current payment status; refunds only apply to ``paid``.
        policy: Immutable policy value to evaluate against.
        reschedule_count: How many times the booking was already rescheduled.
        locale: ``th`` or ``en`` for the reason text.

    Returns:
        An EligibilityDecision. ``reason`` is set only when something is
        not permitted.
    """
    locale = locale or settings.policy.locale
    hours = hours_between(now, appointment_at)
    shown_hours = round(hours, 1)

    if booking_status in FINAL_STATUSES:
        return EligibilityDecision(
            can_cancel=False,
            can_reschedule=False,
            hours_until_booking=shown_hours,
            reason=_reason("finalized", locale, status=booking_status.value),
            reschedule_reason=_reason("finalized", locale, status=booking_status.value),
        )

    if hours <= 0:
        return EligibilityDecision(
            can_cancel=False,
            can_reschedule=False,
            hours_until_booking=shown_hours,
            reason=_reason("past", locale),
            reschedule_reason=_reason("past", locale),
        )

    tier = find_tier(policy, hours)
    if tier is None:
        return EligibilityDecision(
            can_cancel=False,
            can_reschedule=False,
            hours_until_booking=shown_hours,
            reason=_reason("no_tier", locale),
            reschedule_reason=_reason("no_tier", locale),
        )

    label = tier.label(locale)
    refund_percentage = tier.refund_percentage if payment_status == PaymentStatus.PAID else 0

    reschedule_reason = None
    can_reschedule = tier.can_reschedule
    limit = policy.settings.max_reschedules_per_booking
    if not can_reschedule:
        reschedule_reason = _reason("reschedule_blocked", locale, label=label or "-")
    elif reschedule_count >= limit:
        can_reschedule = False
        reschedule_reason = _reason("reschedule_limit", locale, limit=limit)

    reason = None
    if not tier.can_cancel:
        reason = _reason("cancel_blocked", locale, label=label or "-")
    elif reschedule_reason:
        reason = reschedule_reason

    return EligibilityDecision(
        can_cancel=tier.can_cancel,
        can_reschedule=can_reschedule,
        refund_percentage=refund_percentage if tier.can_cancel else 0,
        reschedule_fee=tier.reschedule_fee if can_reschedule else Decimal("0"),
        hours_until_booking=shown_hours,
        tier_label=label,
        tier=tier,
        reason=reason,
        reschedule_reason=reschedule_reason,
    )


def appointment_datetime(booking: Booking, timezone_name: Optional[str] = None) -> datetime:
    """The booking's local wall-clock slot as an aware datetime."""
    return combine_local(
        booking.booking_date,
        booking.booking_time,
        timezone_name or settings.policy.business_timezone,
    )


def evaluate_booking(
    booking: Booking,
    policy: CancellationPolicy,
    now: datetime,
    timezone_name: Optional[str] = None,
    locale: Optional[str] = None,
) -> EligibilityDecision:
    """Evaluate a stored booking; shared by the check endpoint and workflows."""
    return evaluate(
        now=now,
        appointment_at=appointment_datetime(booking, timezone_name),
        booking_status=booking.status,
        payment_status=booking.payment_status,
        policy=policy,
        reschedule_count=booking.reschedule_count,
        locale=locale,
    )
