"""
Refund orchestrator: turns an eligibility decision into money returned.

One provider attempt per call, bounded by a timeout. Every attempt is
written to the refund ledger (pending, then completed or failed) so
operators can reconcile failures. The provider is always called with
``refund-{booking_id}-{cancellation_id}``, so a retry of the same
cancellation can never reverse the charge twice.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Optional

from booking_policy.config import settings
from booking_policy.errors import RefundNotFoundError
from booking_policy.interfaces import (
    BookingStore,
    DocumentGenerator,
    PaymentProvider,
    RefundLedger,
)
from booking_policy.logging_context import get_request_logger
from booking_policy.schemas.booking_schema import Booking, PaymentRecord, PaymentStatus
from booking_policy.schemas.policy_schema import EligibilityDecision
from booking_policy.schemas.refund_schema import (
    ProviderResult,
    RefundOutcome,
    RefundPreview,
    RefundStatus,
    RefundTransaction,
)
from booking_policy.utils import percentage_of, to_decimal, to_minor_units

logger = get_request_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def refund_idempotency_key(booking_id: str, cancellation_id: str) -> str:
    """Stable provider idempotency key for one cancellation of one booking."""
    return f"refund-{booking_id}-{cancellation_id}"


def compute_refund_amount(
    booking: Booking, percentage: int, payment: Optional[PaymentRecord] = None
) -> Decimal:
    """``final_price * percentage / 100`` rounded half-up, never above what was collected."""
    if percentage <= 0:
        return Decimal("0.00")
    amount = percentage_of(booking.final_price, percentage)
    if payment is not None:
        amount = min(amount, to_decimal(payment.amount))
    return amount


class RefundOrchestrator:
    """Computes, executes and records refunds for cancelled bookings."""

    def __init__(
        self,
        store: BookingStore,
        ledger: RefundLedger,
        provider: PaymentProvider,
        documents: Optional[DocumentGenerator] = None,
        timeout_sec: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._provider = provider
        self._documents = documents
        self._timeout = timeout_sec or settings.payment.provider_timeout_sec
        self._clock = clock
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------ #
    # Preview
    # ------------------------------------------------------------------ #

    def preview(self, booking: Booking, decision: EligibilityDecision) -> RefundPreview:
        """What cancelling right now would refund. No I/O, no side effects."""
        original = to_decimal(booking.final_price)
        if not decision.can_cancel:
            return RefundPreview(
                eligible=False,
                original_amount=original,
                hours_until_booking=decision.hours_until_booking,
                reason=decision.reason,
            )
        if booking.payment_status != PaymentStatus.PAID:
            return RefundPreview(
                eligible=False,
                original_amount=original,
                hours_until_booking=decision.hours_until_booking,
                reason=f"No payment to refund (payment status: {booking.payment_status.value})",
            )
        amount = compute_refund_amount(booking, decision.refund_percentage)
        return RefundPreview(
            eligible=amount > 0,
            original_amount=original,
            refund_amount=amount,
            refund_percentage=decision.refund_percentage,
            hours_until_booking=decision.hours_until_booking,
            reason=decision.tier_label,
        )

    # ------------------------------------------------------------------ #
    # Refund
    # ------------------------------------------------------------------ #

    async def refund(
        self,
        booking: Booking,
        decision: EligibilityDecision,
        reason: str,
        cancellation_id: str,
    ) -> RefundOutcome:
        """Refund ``decision.refund_percentage`` of the booking price.

        Returns a no-op success when there is nothing to refund. Provider
        failures come back as ``success=False``; they are never raised.
        """
        percentage = decision.refund_percentage
        if percentage <= 0 or booking.payment_status != PaymentStatus.PAID:
            return RefundOutcome(success=True, refund_amount=Decimal("0"), refund_percentage=0)

        payment = await self._store.get_successful_payment(booking.id)
        if payment is None:
            logger.warning(
                "Booking %s is marked paid but has no successful charge; skipping refund",
                booking.id,
            )
            return RefundOutcome(
                success=False,
                refund_percentage=percentage,
                error="No successful payment transaction found for this booking",
            )

        amount = compute_refund_amount(booking, percentage, payment)
        if amount <= 0:
            return RefundOutcome(success=True, refund_amount=Decimal("0"), refund_percentage=0)

        existing = await self._find_active(booking.id, cancellation_id)
        if existing is not None:
            return self._outcome_for_existing(existing)

        transaction = RefundTransaction(
            id=f"rf_{uuid.uuid4().hex[:12]}",
            booking_id=booking.id,
            cancellation_id=cancellation_id,
            payment_transaction_id=payment.id,
            idempotency_key=refund_idempotency_key(booking.id, cancellation_id),
            amount=amount,
            percentage=percentage,
            reason=reason,
            created_at=self._clock(),
        )
        await self._ledger.create(transaction)
        return await self._attempt(transaction, payment.provider_charge_ref)

    async def retry_failed(self, refund_transaction_id: str) -> RefundOutcome:
        """Re-attempt a failed refund with its original idempotency key.

        Used by reconciliation tooling. A fresh ledger row is written for
        the new attempt so the failed row stays in the audit trail.

        Raises:
            RefundNotFoundError: If the refund transaction does not exist.
        """
        failed = await self._ledger.get(refund_transaction_id)
        if failed is None:
            raise RefundNotFoundError(refund_transaction_id)
        if failed.status != RefundStatus.FAILED:
            return self._outcome_for_existing(failed)

        existing = await self._find_active(failed.booking_id, failed.cancellation_id)
        if existing is not None:
            return self._outcome_for_existing(existing)

        payment = await self._store.get_successful_payment(failed.booking_id)
        if payment is None:
            return RefundOutcome(
                success=False,
                refund_percentage=failed.percentage,
                error="No successful payment transaction found for this booking",
            )

        retry = failed.model_copy(update={
            "id": f"rf_{uuid.uuid4().hex[:12]}",
            "status": RefundStatus.PENDING,
            "provider_refund_ref": None,
            "error_message": None,
            "created_at": self._clock(),
            "completed_at": None,
        })
        await self._ledger.create(retry)
        logger.info("Retrying refund %s as %s", failed.id, retry.id)
        return await self._attempt(retry, payment.provider_charge_ref)

    async def drain(self) -> None:
        """Wait for outstanding credit-note tasks (shutdown and tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    async def _find_active(
        self, booking_id: str, cancellation_id: str
    ) -> Optional[RefundTransaction]:
        for row in await self._ledger.list_for_booking(booking_id):
            if row.cancellation_id == cancellation_id and row.status != RefundStatus.FAILED:
                return row
        return None

    @staticmethod
    def _outcome_for_existing(row: RefundTransaction) -> RefundOutcome:
        if row.status == RefundStatus.COMPLETED:
            return RefundOutcome(
                success=True,
                refund_amount=row.amount,
                refund_percentage=row.percentage,
                refund_transaction_id=row.id,
            )
        error = "Refund already in progress" if row.status == RefundStatus.PENDING else (
            row.error_message or "Refund failed"
        )
        return RefundOutcome(
            success=False,
            refund_amount=Decimal("0"),
            refund_percentage=row.percentage,
            refund_transaction_id=row.id,
            error=error,
        )

    async def _call_provider(self, transaction: RefundTransaction, charge_ref: str) -> ProviderResult:
        try:
            return await asyncio.wait_for(
                self._provider.refund(
                    charge_ref, to_minor_units(transaction.amount), transaction.idempotency_key
                ),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Refund %s timed out after %.1fs", transaction.id, self._timeout)
            return ProviderResult(
                success=False, error=f"Payment provider timed out after {self._timeout:g}s"
            )
        except Exception as exc:
            logger.exception("Payment provider raised during refund %s", transaction.id)
            return ProviderResult(success=False, error=str(exc) or exc.__class__.__name__)

    async def _attempt(self, transaction: RefundTransaction, charge_ref: str) -> RefundOutcome:
        result = await self._call_provider(transaction, charge_ref)

        if not result.success:
            failed = transaction.model_copy(update={
                "status": RefundStatus.FAILED,
                "error_message": result.error or "Refund failed",
            })
            await self._ledger.update(failed)
            logger.warning("Refund %s for booking %s failed: %s",
                           failed.id, failed.booking_id, failed.error_message)
            return RefundOutcome(
                success=False,
                refund_percentage=failed.percentage,
                refund_transaction_id=failed.id,
                error=failed.error_message,
            )

        completed = transaction.model_copy(update={
            "status": RefundStatus.COMPLETED,
            "provider_refund_ref": result.provider_ref,
            "completed_at": self._clock(),
        })
        await self._ledger.update(completed)
        logger.info("Refund %s completed: %s %s (%d%%) for booking %s",
                    completed.id, completed.amount, settings.payment.currency,
                    completed.percentage, completed.booking_id)
        # Money has moved; a failed status write must not turn this into a failure.
        try:
            await self._store.update_payment_status(completed.booking_id, PaymentStatus.REFUNDED)
        except Exception:
            logger.exception(
                "Refund %s completed but booking %s payment status was not updated",
                completed.id, completed.booking_id,
            )
        self._schedule_credit_note(completed.id)
        return RefundOutcome(
            success=True,
            refund_amount=completed.amount,
            refund_percentage=completed.percentage,
            refund_transaction_id=completed.id,
        )

    def _schedule_credit_note(self, refund_transaction_id: str) -> None:
        if self._documents is None:
            return
        task = asyncio.create_task(self._generate_credit_note(refund_transaction_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _generate_credit_note(self, refund_transaction_id: str) -> None:
        try:
            await asyncio.wait_for(
                self._documents.generate_and_email_credit_note(refund_transaction_id),
                timeout=self._timeout,
            )
        except Exception:
            logger.exception("Credit note generation failed for refund %s", refund_transaction_id)
