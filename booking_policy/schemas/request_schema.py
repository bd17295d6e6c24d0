"""Request bodies and aggregated workflow results."""

from datetime import date, time
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from booking_policy.schemas.booking_schema import BookingStatus
from booking_policy.schemas.policy_schema import EligibilityDecision
from booking_policy.schemas.refund_schema import FeeOutcome, RefundOption, RefundOutcome
from booking_policy.utils import parse_date, parse_time


class CancelRequest(BaseModel):
    """Validated body of a cancellation request."""
    reason: str
    refund_option: RefundOption
    refund_percentage: Optional[int] = None
    cancelled_by: Optional[str] = None

    @field_validator("reason")
    @classmethod
    def _reason_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Cancellation reason is required")
        return value

    @model_validator(mode="after")
    def _check_partial_percentage(self) -> "CancelRequest":
        if self.refund_option == RefundOption.PARTIAL:
            pct = self.refund_percentage
            if pct is None or pct <= 0 or pct > 100:
                raise ValueError("Partial refund requires a percentage in (0, 100]")
        return self


class RescheduleRequest(BaseModel):
    """Validated body of a reschedule request."""
    new_date: date
    new_time: time

    @field_validator("new_date", mode="before")
    @classmethod
    def _parse_new_date(cls, value):
        if isinstance(value, date):
            return value
        parsed = parse_date(value if isinstance(value, str) else "")
        if parsed is None:
            raise ValueError("new_date must be a valid YYYY-MM-DD date")
        return parsed

    @field_validator("new_time", mode="before")
    @classmethod
    def _parse_new_time(cls, value):
        if isinstance(value, time):
            return value
        parsed = parse_time(value if isinstance(value, str) else "")
        if parsed is None:
            raise ValueError("new_time must be a valid HH:MM time")
        return parsed


class CancellationResult(BaseModel):
    """Everything that happened during one cancellation request."""
    booking_id: str
    status: BookingStatus
    cancelled: bool
    reason: Optional[str] = None
    refund: Optional[RefundOutcome] = None
    notifications: dict[str, bool] = Field(default_factory=dict)
    decision: Optional[EligibilityDecision] = None
    state_trace: list[str] = Field(default_factory=list)


class RescheduleResult(BaseModel):
    """Everything that happened during one reschedule request."""
    booking_id: str
    status: BookingStatus
    rescheduled: bool
    reason: Optional[str] = None
    new_date: Optional[date] = None
    new_time: Optional[time] = None
    released_staff_id: Optional[str] = None
    fee: Optional[FeeOutcome] = None
    notifications: dict[str, bool] = Field(default_factory=dict)
    decision: Optional[EligibilityDecision] = None
    state_trace: list[str] = Field(default_factory=list)
