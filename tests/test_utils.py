"""Tests for shared utility functions."""

from datetime import date, datetime, time, timezone
from decimal import Decimal

from booking_policy.utils import (
    combine_local,
    hours_between,
    parse_date,
    parse_time,
    percentage_of,
    round_half_up,
    to_minor_units,
)


class TestMoney:
    def test_round_half_up(self):
        assert round_half_up("10.005") == Decimal("10.01")

    def test_round_half_up_from_float(self):
        assert round_half_up(0.1 + 0.2) == Decimal("0.30")

    def test_percentage_of(self):
        assert percentage_of("1000", 50) == Decimal("500.00")

    def test_percentage_of_rounds_half_up(self):
        assert percentage_of("99.99", 50) == Decimal("50.00")

    def test_to_minor_units(self):
        assert to_minor_units(Decimal("500.00")) == 50000
        assert to_minor_units("12.345") == 1235


class TestParseDate:
    def test_valid(self):
        assert parse_date("2025-04-01") == date(2025, 4, 1)

    def test_strips_whitespace(self):
        assert parse_date(" 2025-04-01 ") == date(2025, 4, 1)

    def test_wrong_format(self):
        assert parse_date("01/04/2025") is None

    def test_impossible_date(self):
        assert parse_date("2025-02-30") is None

    def test_empty(self):
        assert parse_date("") is None


class TestParseTime:
    def test_hours_minutes(self):
        assert parse_time("09:30") == time(9, 30)

    def test_with_seconds(self):
        assert parse_time("09:30:15") == time(9, 30, 15)

    def test_out_of_range(self):
        assert parse_time("24:00") is None

    def test_free_text(self):
        assert parse_time("half nine") is None


class TestTime:
    def test_combine_local_is_aware(self):
        slot = combine_local(date(2025, 3, 15), time(10, 0), "Asia/Bangkok")
        assert slot.utcoffset().total_seconds() == 7 * 3600

    def test_hours_between_is_signed(self):
        start = datetime(2025, 3, 15, 0, 0, tzinfo=timezone.utc)
        end = datetime(2025, 3, 15, 6, 30, tzinfo=timezone.utc)
        assert hours_between(start, end) == 6.5
        assert hours_between(end, start) == -6.5

    def test_hours_between_across_timezones(self):
        now = datetime(2025, 3, 15, 3, 0, tzinfo=timezone.utc)
        slot = combine_local(date(2025, 3, 15), time(20, 0), "Asia/Bangkok")
        assert hours_between(now, slot) == 10.0
