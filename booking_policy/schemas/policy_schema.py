"""Cancellation policy tables and eligibility decisions."""

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class PolicyTier(BaseModel):
    """One row of the policy, covering ``[min_hours_before, max_hours_before)``."""

    model_config = ConfigDict(frozen=True)

    min_hours_before: float = Field(ge=0)
    max_hours_before: Optional[float] = None
    can_cancel: bool = False
    can_reschedule: bool = False
    refund_percentage: int = Field(default=0, ge=0, le=100)
    reschedule_fee: Decimal = Field(default=Decimal("0"), ge=0)
    label_th: Optional[str] = None
    label_en: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True

    @model_validator(mode="after")
    def _check_range(self) -> "PolicyTier":
        if self.max_hours_before is not None and self.max_hours_before <= self.min_hours_before:
            raise ValueError(
                f"max_hours_before ({self.max_hours_before}) must be greater than "
                f"min_hours_before ({self.min_hours_before})"
            )
        return self

    def contains(self, hours: float) -> bool:
        if hours < self.min_hours_before:
            return False
        return self.max_hours_before is None or hours < self.max_hours_before

    def label(self, locale: str = "th") -> Optional[str]:
        if locale == "th":
            return self.label_th or self.label_en
        return self.label_en or self.label_th


class PolicySettings(BaseModel):
    """Policy-wide settings that apply across all tiers."""

    model_config = ConfigDict(frozen=True)

    max_reschedules_per_booking: int = Field(default=2, ge=0, le=10)
    refund_processing_days: int = Field(default=5, ge=1, le=60)
    policy_title_th: Optional[str] = None
    policy_title_en: Optional[str] = None


class CancellationPolicy(BaseModel):
    """Immutable policy value handed to the evaluator on every call."""

    model_config = ConfigDict(frozen=True)

    settings: PolicySettings = Field(default_factory=PolicySettings)
    tiers: tuple[PolicyTier, ...] = ()

    def active_tiers(self) -> list[PolicyTier]:
        """Active tiers in evaluation order."""
        return sorted((t for t in self.tiers if t.is_active), key=lambda t: t.sort_order)


class EligibilityDecision(BaseModel):
    """Pure result of evaluating one booking against the policy at one instant.

    Serialises with camelCase keys (``canCancel``, ``refundPercentage``)
    for the booking-detail UI.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    can_cancel: bool
    can_reschedule: bool
    refund_percentage: int = 0
    reschedule_fee: Decimal = Decimal("0")
    hours_until_booking: float = 0.0
    tier_label: Optional[str] = None
    tier: Optional[PolicyTier] = None
    reason: Optional[str] = None
    reschedule_reason: Optional[str] = None
