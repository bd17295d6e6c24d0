"""Refund ledger records and payment outcomes."""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RefundStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class RefundOption(str, Enum):
    AUTO = "auto"
    NONE = "none"
    FULL = "full"
    PARTIAL = "partial"


class RefundTransaction(BaseModel):
    """Audit record of money returned (or attempted) for one booking."""
    id: str
    booking_id: str
    cancellation_id: str
    payment_transaction_id: str
    idempotency_key: str
    amount: Decimal
    percentage: int
    reason: str
    status: RefundStatus = RefundStatus.PENDING
    provider_refund_ref: Optional[str] = None
    error_message: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None


class RefundOutcome(BaseModel):
    """Result of one refund attempt, independent of the cancellation itself."""
    success: bool
    refund_amount: Decimal = Decimal("0")
    refund_percentage: int = 0
    refund_transaction_id: Optional[str] = None
    error: Optional[str] = None


class RefundPreview(BaseModel):
    """What a cancellation right now would refund, without side effects."""
    eligible: bool
    original_amount: Decimal
    refund_amount: Decimal = Decimal("0")
    refund_percentage: int = 0
    hours_until_booking: float = 0.0
    reason: Optional[str] = None


class FeeOutcome(BaseModel):
    """Result of charging a reschedule fee top-up."""
    success: bool
    fee_amount: Decimal = Decimal("0")
    charge_ref: Optional[str] = None
    error: Optional[str] = None


class ProviderResult(BaseModel):
    """Normalized payment-provider response for refunds and charges."""
    success: bool
    provider_ref: Optional[str] = None
    error: Optional[str] = None
