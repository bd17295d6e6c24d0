"""
Endpoint layer consumed by the thin HTTP server.

Each method corresponds to one route and returns an ``ApiResponse`` with
the status code and JSON-ready body, so any web framework can bind it in
a few lines. Policy rejections are 200 responses carrying
``canCancel``/``canReschedule`` = false and a reason; only malformed
requests (400), unknown bookings (404) and unexpected faults (500) are
errors.

Routes:
    POST /bookings/{id}/cancel              -> cancel()
    POST /bookings/{id}/reschedule          -> reschedule()
    GET  /bookings/{id}/cancellation-check  -> cancellation_check()
    GET  /bookings/{id}/refund-preview      -> refund_preview()
    POST /refunds/{id}/retry                -> retry_refund()
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Mapping, Optional

from booking_policy.errors import BookingNotFoundError, BookingPolicyError
from booking_policy.interfaces import (
    BookingStore,
    DocumentGenerator,
    NotificationChannel,
    PaymentProvider,
    RefundLedger,
)
from booking_policy.workflows.base import PolicySource, _utcnow
from booking_policy.workflows.cancellation import CancellationWorkflow
from booking_policy.workflows.notifications import NotificationFanout
from booking_policy.workflows.refund_orchestrator import RefundOrchestrator
from booking_policy.workflows.reschedule import RescheduleWorkflow

logger = logging.getLogger(__name__)


@dataclass
class ApiResponse:
    """Framework-agnostic HTTP response."""
    status_code: int
    body: dict[str, Any] = field(default_factory=dict)


class BookingPolicyService:
    """Wires the collaborators into the workflows and exposes the routes."""

    def __init__(
        self,
        store: BookingStore,
        ledger: RefundLedger,
        provider: PaymentProvider,
        channels: Mapping[str, NotificationChannel],
        policy: PolicySource,
        documents: Optional[DocumentGenerator] = None,
        clock: Callable[[], datetime] = _utcnow,
        timezone_name: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> None:
        self.store = store
        self.refunds = RefundOrchestrator(store, ledger, provider, documents, clock=clock)
        self.fanout = NotificationFanout(channels)
        context = {"clock": clock, "timezone_name": timezone_name, "locale": locale}
        self.cancellation = CancellationWorkflow(
            store, self.refunds, self.fanout, policy, **context
        )
        self.rescheduling = RescheduleWorkflow(store, provider, self.fanout, policy, **context)

    async def cancel(self, booking_id: str, body: Mapping[str, Any]) -> ApiResponse:
        async def run() -> ApiResponse:
            result = await self.cancellation.cancel_booking(
                booking_id,
                reason=body.get("reason"),
                refund_option=body.get("refund_option"),
                refund_percentage=body.get("refund_percentage"),
                cancelled_by=body.get("admin_id") or body.get("cancelled_by"),
            )
            data = result.model_dump(mode="json", exclude={"decision", "state_trace"})
            data["canCancel"] = result.cancelled
            return ApiResponse(200, data)

        return await self._guard("cancel", booking_id, run)

    async def reschedule(self, booking_id: str, body: Mapping[str, Any]) -> ApiResponse:
        async def run() -> ApiResponse:
            result = await self.rescheduling.reschedule_booking(
                booking_id, body.get("new_date"), body.get("new_time")
            )
            data = result.model_dump(mode="json", exclude={"decision", "state_trace"})
            data["canReschedule"] = result.rescheduled
            return ApiResponse(200, data)

        return await self._guard("reschedule", booking_id, run)

    async def cancellation_check(self, booking_id: str) -> ApiResponse:
        async def run() -> ApiResponse:
            booking = await self.store.get(booking_id)
            if booking is None:
                raise BookingNotFoundError(booking_id)
            decision = self.cancellation.evaluate(booking)
            return ApiResponse(200, decision.model_dump(mode="json", by_alias=True))

        return await self._guard("cancellation-check", booking_id, run)

    async def refund_preview(self, booking_id: str) -> ApiResponse:
        async def run() -> ApiResponse:
            booking = await self.store.get(booking_id)
            if booking is None:
                raise BookingNotFoundError(booking_id)
            decision = self.cancellation.evaluate(booking)
            preview = self.refunds.preview(booking, decision)
            return ApiResponse(200, preview.model_dump(mode="json"))

        return await self._guard("refund-preview", booking_id, run)

    async def retry_refund(self, refund_transaction_id: str) -> ApiResponse:
        async def run() -> ApiResponse:
            outcome = await self.refunds.retry_failed(refund_transaction_id)
            return ApiResponse(200, outcome.model_dump(mode="json"))

        return await self._guard("retry-refund", refund_transaction_id, run)

    @staticmethod
    async def _guard(
        route: str, resource_id: str, handler: Callable[[], Awaitable[ApiResponse]]
    ) -> ApiResponse:
        try:
            return await handler()
        except BookingPolicyError as exc:
            if exc.status_code >= 500:
                logger.exception("%s %s failed", route, resource_id)
            else:
                logger.info("%s %s -> %d: %s", route, resource_id, exc.status_code, exc)
            return ApiResponse(exc.status_code, {"error": str(exc)})
        except Exception as exc:
            logger.exception("%s %s raised unexpectedly", route, resource_id)
            return ApiResponse(500, {"error": str(exc) or "Internal error"})
