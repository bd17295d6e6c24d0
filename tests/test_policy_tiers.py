"""Tests for policy tables, tier models and structural validation."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from booking_policy.config import PolicyConfig
from booking_policy.errors import PolicyConfigurationError
from booking_policy.policy.tiers import (
    DEFAULT_TIERS,
    default_policy,
    require_valid_policy,
    validate_policy,
)
from booking_policy.schemas.policy_schema import CancellationPolicy, PolicySettings, PolicyTier

from tests.conftest import make_policy


class TestPolicyTier:
    def test_max_must_exceed_min(self):
        with pytest.raises(ValidationError, match="must be greater than"):
            PolicyTier(min_hours_before=24, max_hours_before=3)

    def test_refund_percentage_range(self):
        with pytest.raises(ValidationError):
            PolicyTier(min_hours_before=0, refund_percentage=150)

    def test_negative_fee_rejected(self):
        with pytest.raises(ValidationError):
            PolicyTier(min_hours_before=0, reschedule_fee=Decimal("-1"))

    def test_open_ended_contains_large_values(self):
        tier = PolicyTier(min_hours_before=24)
        assert tier.contains(10_000)
        assert not tier.contains(23.9)

    def test_label_falls_back_between_locales(self):
        tier = PolicyTier(min_hours_before=0, label_en="English only")
        assert tier.label("th") == "English only"
        assert tier.label("en") == "English only"

    def test_tiers_are_immutable(self):
        tier = PolicyTier(min_hours_before=0)
        with pytest.raises(ValidationError):
            tier.refund_percentage = 10


class TestPolicySettings:
    def test_defaults(self):
        s = PolicySettings()
        assert s.max_reschedules_per_booking == 2
        assert s.refund_processing_days == 5

    @pytest.mark.parametrize("value", [-1, 11])
    def test_max_reschedules_range(self, value):
        with pytest.raises(ValidationError):
            PolicySettings(max_reschedules_per_booking=value)

    @pytest.mark.parametrize("value", [0, 61])
    def test_processing_days_range(self, value):
        with pytest.raises(ValidationError):
            PolicySettings(refund_processing_days=value)


class TestActiveTiers:
    def test_sorted_by_sort_order(self):
        policy = CancellationPolicy(tiers=(
            PolicyTier(min_hours_before=24, sort_order=2),
            PolicyTier(min_hours_before=0, max_hours_before=24, sort_order=1),
        ))
        assert [t.sort_order for t in policy.active_tiers()] == [1, 2]

    def test_inactive_excluded(self):
        policy = CancellationPolicy(tiers=(
            PolicyTier(min_hours_before=0, is_active=False),
        ))
        assert policy.active_tiers() == []


class TestValidatePolicy:
    def test_default_policy_is_valid(self):
        assert validate_policy(default_policy()) == []

    def test_test_policy_is_valid(self):
        assert validate_policy(make_policy()) == []

    def test_no_active_tiers(self):
        assert validate_policy(CancellationPolicy()) == ["policy has no active tiers"]

    def test_overlap_reported(self):
        policy = CancellationPolicy(tiers=(
            PolicyTier(min_hours_before=0, max_hours_before=12),
            PolicyTier(min_hours_before=6, max_hours_before=24),
        ))
        problems = validate_policy(policy)
        assert len(problems) == 1
        assert "overlaps" in problems[0]

    def test_open_ended_tier_before_another_overlaps(self):
        policy = CancellationPolicy(tiers=(
            PolicyTier(min_hours_before=0),
            PolicyTier(min_hours_before=24),
        ))
        assert "overlaps" in validate_policy(policy)[0]

    def test_gap_reported(self):
        policy = CancellationPolicy(tiers=(
            PolicyTier(min_hours_before=0, max_hours_before=3),
            PolicyTier(min_hours_before=6),
        ))
        problems = validate_policy(policy)
        assert problems == ["gap between 3h and 6h is not covered by any tier"]

    def test_inactive_tiers_ignored(self):
        policy = CancellationPolicy(tiers=(
            PolicyTier(min_hours_before=0),
            PolicyTier(min_hours_before=6, max_hours_before=12, is_active=False),
        ))
        assert validate_policy(policy) == []

    def test_require_valid_policy_raises_with_problems(self):
        with pytest.raises(PolicyConfigurationError) as exc_info:
            require_valid_policy(CancellationPolicy())
        assert exc_info.value.problems == ["policy has no active tiers"]

    def test_require_valid_policy_returns_policy(self):
        policy = make_policy()
        assert require_valid_policy(policy) is policy


class TestDefaultPolicy:
    def test_three_tiers(self):
        assert len(DEFAULT_TIERS) == 3
        assert [t.refund_percentage for t in DEFAULT_TIERS] == [0, 50, 100]

    def test_settings_from_config(self):
        config = PolicyConfig(max_reschedules_per_booking=4, refund_processing_days=10)
        policy = default_policy(config)
        assert policy.settings.max_reschedules_per_booking == 4
        assert policy.settings.refund_processing_days == 10
