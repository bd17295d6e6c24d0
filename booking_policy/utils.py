"""Shared money and date/time helpers used across the policy engine."""

import re
from datetime import date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union
from zoneinfo import ZoneInfo

CENTS = Decimal("0.01")

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}(:\d{2})?$")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Number) -> Decimal:
    """Convert a price to Decimal without inheriting binary float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_half_up(value: Number) -> Decimal:
    """Round a monetary amount to two places, halves away from zero.

    Examples:
        >>> round_half_up("10.005")
        Decimal('10.01')
        >>> round_half_up(333.333)
        Decimal('333.33')
    """
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def percentage_of(amount: Number, percentage: Number) -> Decimal:
    """Return ``percentage`` percent of ``amount``, rounded half-up to cents."""
    return round_half_up(to_decimal(amount) * to_decimal(percentage) / Decimal(100))


def to_minor_units(amount: Number) -> int:
    """Convert a major-unit amount (baht) to integer minor units (satang)."""
    return int(round_half_up(amount) * 100)


def parse_date(value: str) -> Optional[date]:
    """Parse a strict ``YYYY-MM-DD`` string. Returns None when malformed."""
    value = (value or "").strip()
    if not _DATE_RE.match(value):
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_time(value: str) -> Optional[time]:
    """Parse ``HH:MM`` or ``HH:MM:SS``. Returns None when malformed."""
    value = (value or "").strip()
    if not _TIME_RE.match(value):
        return None
    fmt = "%H:%M:%S" if value.count(":") == 2 else "%H:%M"
    try:
        return datetime.strptime(value, fmt).time()
    except ValueError:
        return None


def combine_local(day: date, at: time, timezone_name: str) -> datetime:
    """Build an aware datetime for a wall-clock slot in the business timezone."""
    return datetime.combine(day, at).replace(tzinfo=ZoneInfo(timezone_name))


def hours_between(start: datetime, end: datetime) -> float:
    """Signed number of hours from ``start`` to ``end``."""
    return (end - start).total_seconds() / 3600.0
