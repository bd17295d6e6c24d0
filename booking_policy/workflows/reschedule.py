"""
Reschedule workflow: move a booking to a new slot under the current policy.

A successful reschedule always releases the assigned staff member, since
availability is slot-specific and they must accept the job again. A
reschedule fee, when the tier charges one, is a separate top-up charge; a
declined fee is recorded but the new slot stands.
"""

import asyncio
from decimal import Decimal
from typing import Optional

from pydantic import ValidationError

from booking_policy.config import settings
from booking_policy.errors import RequestValidationError
from booking_policy.interfaces import BookingStore, PaymentProvider
from booking_policy.logging_context import get_request_logger
from booking_policy.messages.notification_templates import build_reschedule_payload
from booking_policy.policy.evaluator import REASONS
from booking_policy.policy.state_machine import WorkflowStateMachine, WorkflowTrigger
from booking_policy.schemas.booking_schema import OPEN_STATUSES, Booking
from booking_policy.schemas.refund_schema import FeeOutcome, ProviderResult
from booking_policy.schemas.request_schema import RescheduleRequest, RescheduleResult
from booking_policy.utils import combine_local, to_minor_units
from booking_policy.workflows.base import PolicySource, PolicyWorkflow, validation_message
from booking_policy.workflows.notifications import NotificationEvent, NotificationFanout

logger = get_request_logger(__name__)


def reschedule_fee_key(booking_id: str, reschedule_number: int) -> str:
    """Idempotency key for the fee of the n-th reschedule of a booking."""
    return f"reschedule-fee-{booking_id}-{reschedule_number}"


class RescheduleWorkflow(PolicyWorkflow):
    """Top-level use case behind ``POST /bookings/{id}/reschedule``."""

    request_prefix = "reschedule"

    def __init__(
        self,
        store: BookingStore,
        provider: PaymentProvider,
        fanout: NotificationFanout,
        policy: PolicySource,
        provider_timeout_sec: Optional[float] = None,
        **kwargs,
    ) -> None:
        super().__init__(store, fanout, policy, **kwargs)
        self._provider = provider
        self._provider_timeout = provider_timeout_sec or settings.payment.provider_timeout_sec

    async def reschedule_booking(
        self, booking_id: str, new_date: Optional[str], new_time: Optional[str]
    ) -> RescheduleResult:
        """Move a booking to ``new_date`` ``new_time``.

        Raises:
            RequestValidationError: Missing/malformed date or time, or a slot in the past.
            BookingNotFoundError: Unknown booking id.
        """
        self._begin(booking_id)
        if not new_date or not new_time:
            raise RequestValidationError("new_date and new_time are required")
        try:
            request = RescheduleRequest(new_date=new_date, new_time=new_time)
        except ValidationError as exc:
            raise RequestValidationError(validation_message(exc)) from None

        new_slot = combine_local(request.new_date, request.new_time, self._timezone)
        if new_slot <= self._clock():
            raise RequestValidationError("The new date and time must be in the future")

        sm = WorkflowStateMachine()
        booking = await self._load_booking(booking_id)
        decision = self.evaluate(booking)
        sm.transition(WorkflowTrigger.ELIGIBILITY_EVALUATED)

        if not decision.can_reschedule:
            sm.transition(WorkflowTrigger.INELIGIBLE)
            sm.transition(WorkflowTrigger.FINISHED)
            reason = decision.reschedule_reason or decision.reason
            logger.info("Reschedule of %s rejected: %s", booking_id, reason)
            return RescheduleResult(
                booking_id=booking_id,
                status=booking.status,
                rescheduled=False,
                reason=reason,
                decision=decision,
                state_trace=sm.get_state_trace(),
            )

        updated = await self._store.update_schedule(
            booking_id,
            request.new_date,
            request.new_time,
            clear_staff=True,
            from_statuses=OPEN_STATUSES,
            expected_reschedule_count=booking.reschedule_count,
        )
        if updated is None:
            sm.transition(WorkflowTrigger.ALREADY_FINALIZED)
            sm.transition(WorkflowTrigger.FINISHED)
            current = await self._load_booking(booking_id)
            reason = self._lost_race_reason(current)
            logger.info("Reschedule of %s lost a concurrent race: %s", booking_id, reason)
            return RescheduleResult(
                booking_id=booking_id,
                status=current.status,
                rescheduled=False,
                reason=reason,
                decision=decision,
                state_trace=sm.get_state_trace(),
            )
        sm.transition(WorkflowTrigger.STATUS_COMMITTED)
        logger.info(
            "Booking %s moved to %s %s; staff %s released",
            booking_id, request.new_date, request.new_time, booking.staff_id or "-",
        )

        fee: Optional[FeeOutcome] = None
        if decision.reschedule_fee > 0:
            sm.transition(WorkflowTrigger.PAYMENT_ATTEMPTED)
            fee = await self._charge_fee(updated, decision.reschedule_fee)

        payload = build_reschedule_payload(booking, updated)
        notifications = await self._fanout.notify(
            NotificationEvent.BOOKING_RESCHEDULED, updated, payload
        )
        sm.transition(WorkflowTrigger.NOTIFICATIONS_DISPATCHED)
        sm.transition(WorkflowTrigger.FINISHED)

        return RescheduleResult(
            booking_id=booking_id,
            status=updated.status,
            rescheduled=True,
            new_date=updated.booking_date,
            new_time=updated.booking_time,
            released_staff_id=booking.staff_id,
            fee=fee,
            notifications=notifications,
            decision=decision,
            state_trace=sm.get_state_trace(),
        )

    def _lost_race_reason(self, current: Booking) -> str:
        """Explain why the guarded write matched no row, from the booking as it is now."""
        decision = self.evaluate(current)
        if not decision.can_reschedule:
            return decision.reschedule_reason or decision.reason
        messages = REASONS["concurrent_change"]
        return messages.get(self._locale, messages["en"])

    async def _charge_fee(self, booking: Booking, amount: Decimal) -> FeeOutcome:
        key = reschedule_fee_key(booking.id, booking.reschedule_count)
        try:
            result = await asyncio.wait_for(
                self._provider.charge(
                    booking.customer_id,
                    to_minor_units(amount),
                    key,
                    f"Reschedule fee {amount} {settings.payment.currency} "
                    f"for booking {booking.booking_number or booking.id}",
                ),
                timeout=self._provider_timeout,
            )
        except asyncio.TimeoutError:
            result = ProviderResult(
                success=False,
                error=f"Payment provider timed out after {self._provider_timeout:g}s",
            )
        except Exception as exc:
            logger.exception("Reschedule fee charge raised for %s", booking.id)
            result = ProviderResult(success=False, error=str(exc) or exc.__class__.__name__)

        if not result.success:
            logger.warning("Reschedule fee for %s not collected: %s", booking.id, result.error)
        return FeeOutcome(
            success=result.success,
            fee_amount=amount,
            charge_ref=result.provider_ref,
            error=result.error,
        )
