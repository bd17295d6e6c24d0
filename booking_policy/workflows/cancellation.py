"""
Cancellation workflow: validate, evaluate, commit, refund, notify.

The conditional status update is the commit point. Once it succeeds the
booking is cancelled for good; a failed refund is recorded in the ledger
for manual reconciliation and notifications are still sent.
"""

import uuid
from typing import Optional

from pydantic import ValidationError

from booking_policy.config import settings
from booking_policy.errors import RequestValidationError
from booking_policy.interfaces import BookingStore
from booking_policy.logging_context import get_request_logger
from booking_policy.messages.notification_templates import build_cancellation_payload
from booking_policy.policy.evaluator import REASONS
from booking_policy.policy.state_machine import WorkflowStateMachine, WorkflowTrigger
from booking_policy.schemas.booking_schema import (
    OPEN_STATUSES,
    Booking,
    BookingStatus,
    PaymentStatus,
)
from booking_policy.schemas.policy_schema import EligibilityDecision
from booking_policy.schemas.refund_schema import RefundOption, RefundOutcome
from booking_policy.schemas.request_schema import CancellationResult, CancelRequest
from booking_policy.workflows.base import PolicySource, PolicyWorkflow, validation_message
from booking_policy.workflows.notifications import NotificationEvent, NotificationFanout
from booking_policy.workflows.refund_orchestrator import RefundOrchestrator

logger = get_request_logger(__name__)


def resolve_refund_percentage(request: CancelRequest, decision: EligibilityDecision) -> int:
    """Apply the refund option on top of the tier percentage.

    ``auto`` follows the policy; ``none``, ``full`` and ``partial`` are
    operator overrides and ignore the tier entirely.
    """
    if request.refund_option == RefundOption.AUTO:
        return decision.refund_percentage
    if request.refund_option == RefundOption.NONE:
        return 0
    if request.refund_option == RefundOption.FULL:
        return 100
    return int(request.refund_percentage or 0)


class CancellationWorkflow(PolicyWorkflow):
    """Top-level use case behind ``POST /bookings/{id}/cancel``."""

    request_prefix = "cancel"

    def __init__(
        self,
        store: BookingStore,
        refunds: RefundOrchestrator,
        fanout: NotificationFanout,
        policy: PolicySource,
        **kwargs,
    ) -> None:
        super().__init__(store, fanout, policy, **kwargs)
        self._refunds = refunds

    async def cancel_booking(
        self,
        booking_id: str,
        reason: Optional[str],
        refund_option: Optional[str],
        refund_percentage: Optional[float] = None,
        cancelled_by: Optional[str] = None,
    ) -> CancellationResult:
        """Cancel a booking under the current policy.

        Raises:
            RequestValidationError: Missing reason/option or bad partial percentage.
            BookingNotFoundError: Unknown booking id.

        Policy ineligibility and lost races are returned as a result with
        ``cancelled=False``, not raised.
        """
        self._begin(booking_id)
        try:
            request = CancelRequest(
                reason=reason,
                refund_option=refund_option,
                refund_percentage=refund_percentage,
                cancelled_by=cancelled_by,
            )
        except ValidationError as exc:
            raise RequestValidationError(validation_message(exc)) from None

        sm = WorkflowStateMachine()
        booking = await self._load_booking(booking_id)
        policy = self.load_policy()
        decision = self.evaluate(booking, policy)
        sm.transition(WorkflowTrigger.ELIGIBILITY_EVALUATED)

        if not decision.can_cancel:
            sm.transition(WorkflowTrigger.INELIGIBLE)
            sm.transition(WorkflowTrigger.FINISHED)
            logger.info("Cancellation of %s rejected: %s", booking_id, decision.reason)
            return CancellationResult(
                booking_id=booking_id,
                status=booking.status,
                cancelled=False,
                reason=decision.reason,
                decision=decision,
                state_trace=sm.get_state_trace(),
            )

        cancellation_id = uuid.uuid4().hex[:12]
        now = self._clock()
        committed = await self._store.conditional_update_status(
            booking_id,
            OPEN_STATUSES,
            BookingStatus.CANCELLED,
            {
                "cancellation_reason": request.reason,
                "cancellation_id": cancellation_id,
                "cancelled_at": now,
                "cancelled_by": request.cancelled_by,
            },
        )
        if not committed:
            sm.transition(WorkflowTrigger.ALREADY_FINALIZED)
            sm.transition(WorkflowTrigger.FINISHED)
            current = await self._store.get(booking_id)
            status = current.status if current else booking.status
            messages = REASONS["finalized"]
            reason_text = messages.get(self._locale, messages["en"]).format(status=status.value)
            logger.info("Cancellation of %s lost a concurrent race (%s)", booking_id, status.value)
            return CancellationResult(
                booking_id=booking_id,
                status=status,
                cancelled=False,
                reason=reason_text,
                decision=decision,
                state_trace=sm.get_state_trace(),
            )
        sm.transition(WorkflowTrigger.STATUS_COMMITTED)
        logger.info("Booking %s cancelled (attempt %s)", booking_id, cancellation_id)

        refund: Optional[RefundOutcome] = None
        percentage = resolve_refund_percentage(request, decision)
        if percentage > 0 and booking.payment_status == PaymentStatus.PAID:
            sm.transition(WorkflowTrigger.PAYMENT_ATTEMPTED)
            refund = await self._attempt_refund(
                booking, decision, percentage, request.reason, cancellation_id
            )

        cancelled = booking.model_copy(update={
            "status": BookingStatus.CANCELLED,
            "cancellation_reason": request.reason,
            "cancellation_id": cancellation_id,
            "cancelled_at": now,
        })
        payload = build_cancellation_payload(
            cancelled,
            request.reason,
            refund,
            policy.settings.refund_processing_days,
            support_email=settings.notifications.support_email,
            support_phone=settings.notifications.support_phone,
            currency=settings.payment.currency,
        )
        notifications = await self._fanout.notify(
            NotificationEvent.BOOKING_CANCELLED, cancelled, payload
        )
        sm.transition(WorkflowTrigger.NOTIFICATIONS_DISPATCHED)
        sm.transition(WorkflowTrigger.FINISHED)

        return CancellationResult(
            booking_id=booking_id,
            status=BookingStatus.CANCELLED,
            cancelled=True,
            refund=refund,
            notifications=notifications,
            decision=decision,
            state_trace=sm.get_state_trace(),
        )

    async def _attempt_refund(
        self,
        booking: Booking,
        decision: EligibilityDecision,
        percentage: int,
        reason: str,
        cancellation_id: str,
    ) -> RefundOutcome:
        resolved = decision.model_copy(update={"refund_percentage": percentage})
        try:
            return await self._refunds.refund(booking, resolved, reason, cancellation_id)
        except Exception as exc:
            # Past the commit point: record and carry on to notifications.
            logger.exception("Refund for %s raised after commit", booking.id)
            return RefundOutcome(
                success=False,
                refund_percentage=percentage,
                error=str(exc) or exc.__class__.__name__,
            )

