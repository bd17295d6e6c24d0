"""
Policy table construction and structural validation.

The evaluator tolerates any tier table (uncovered ranges simply mean
"cannot cancel"), so validation here is for admin tooling and startup
checks: it reports overlapping or gapped ranges before they reach
customers.
"""

import logging
from decimal import Decimal
from typing import Optional

from booking_policy.config import PolicyConfig, settings
from booking_policy.errors import PolicyConfigurationError
from booking_policy.schemas.policy_schema import CancellationPolicy, PolicySettings, PolicyTier

logger = logging.getLogger(__name__)

DEFAULT_TIERS: tuple[PolicyTier, ...] = (
    PolicyTier(
        min_hours_before=0,
        max_hours_before=3,
        can_cancel=False,
        can_reschedule=False,
        refund_percentage=0,
        label_th="น้อยกว่า 3 ชั่วโมง ไม่สามารถยกเลิกหรือเลื่อนนัดได้",
        label_en="Less than 3 hours: no cancellation or reschedule",
        sort_order=1,
    ),
    PolicyTier(
        min_hours_before=3,
        max_hours_before=24,
        can_cancel=True,
        can_reschedule=True,
        refund_percentage=50,
        reschedule_fee=Decimal("100"),
        label_th="3-24 ชั่วโมง คืนเงิน 50%",
        label_en="3-24 hours: 50% refund",
        sort_order=2,
    ),
    PolicyTier(
        min_hours_before=24,
        max_hours_before=None,
        can_cancel=True,
        can_reschedule=True,
        refund_percentage=100,
        label_th="มากกว่า 24 ชั่วโมง คืนเงินเต็มจำนวน",
        label_en="More than 24 hours: full refund",
        sort_order=3,
    ),
)


def default_policy(config: Optional[PolicyConfig] = None) -> CancellationPolicy:
    """Build the fallback policy, taking policy-wide settings from config."""
    config = config or settings.policy
    return CancellationPolicy(
        settings=PolicySettings(
            max_reschedules_per_booking=config.max_reschedules_per_booking,
            refund_processing_days=config.refund_processing_days,
        ),
        tiers=DEFAULT_TIERS,
    )


def _fmt(hours: Optional[float]) -> str:
    return "inf" if hours is None else f"{hours:g}"


def validate_policy(policy: CancellationPolicy) -> list[str]:
    """Return a list of structural problems; an empty list means valid.

    Checks active tiers only. Ranges are compared in hour order, so the
    tiers' ``sort_order`` does not affect the result.
    """
    problems: list[str] = []
    tiers = sorted(policy.active_tiers(), key=lambda t: t.min_hours_before)

    if not tiers:
        problems.append("policy has no active tiers")
        return problems

    for prev, cur in zip(tiers, tiers[1:]):
        prev_range = f"[{_fmt(prev.min_hours_before)}, {_fmt(prev.max_hours_before)})"
        cur_range = f"[{_fmt(cur.min_hours_before)}, {_fmt(cur.max_hours_before)})"
        if prev.max_hours_before is None or prev.max_hours_before > cur.min_hours_before:
            problems.append(f"tier {prev_range} overlaps tier {cur_range}")
        elif prev.max_hours_before < cur.min_hours_before:
            problems.append(
                f"gap between {_fmt(prev.max_hours_before)}h and "
                f"{_fmt(cur.min_hours_before)}h is not covered by any tier"
            )

    if tiers[0].min_hours_before > 0:
        logger.debug(
            "Policy leaves [0, %s) uncovered; those bookings cannot be cancelled",
            _fmt(tiers[0].min_hours_before),
        )
    return problems


def require_valid_policy(policy: CancellationPolicy) -> CancellationPolicy:
    """Return the policy unchanged, or raise if it is structurally invalid."""
    problems = validate_policy(policy)
    if problems:
        raise PolicyConfigurationError(problems)
    return policy
