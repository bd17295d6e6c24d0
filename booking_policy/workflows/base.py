"""Shared plumbing for the cancellation and reschedule workflows."""

import uuid
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from pydantic import ValidationError

from booking_policy.config import settings
from booking_policy.errors import BookingNotFoundError, RequestValidationError
from booking_policy.interfaces import BookingStore
from booking_policy.logging_context import set_request_id
from booking_policy.policy.evaluator import evaluate_booking
from booking_policy.schemas.booking_schema import Booking
from booking_policy.schemas.policy_schema import CancellationPolicy, EligibilityDecision
from booking_policy.workflows.notifications import NotificationFanout

PolicySource = Union[CancellationPolicy, Callable[[], CancellationPolicy]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validation_message(exc: ValidationError) -> str:
    """Flatten a pydantic error into one client-facing sentence."""
    parts = []
    for err in exc.errors():
        field_name = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
        msg = err.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{field_name}: {msg}" if field_name else msg)
    return "; ".join(parts) or "Invalid request"


class PolicyWorkflow:
    """Holds the collaborators and evaluation context both workflows share."""

    request_prefix = "req"

    def __init__(
        self,
        store: BookingStore,
        fanout: NotificationFanout,
        policy: PolicySource,
        clock: Callable[[], datetime] = _utcnow,
        timezone_name: Optional[str] = None,
        locale: Optional[str] = None,
    ) -> None:
        self._store = store
        self._fanout = fanout
        self._policy = policy
        self._clock = clock
        self._timezone = timezone_name or settings.policy.business_timezone
        self._locale = locale or settings.policy.locale

    def load_policy(self) -> CancellationPolicy:
        """Policy is re-read on every request so edits apply without restart."""
        if isinstance(self._policy, CancellationPolicy):
            return self._policy
        return self._policy()

    def evaluate(
        self, booking: Booking, policy: Optional[CancellationPolicy] = None
    ) -> EligibilityDecision:
        return evaluate_booking(
            booking,
            policy if policy is not None else self.load_policy(),
            now=self._clock(),
            timezone_name=self._timezone,
            locale=self._locale,
        )

    def _begin(self, booking_id: str) -> None:
        if not booking_id or not booking_id.strip():
            raise RequestValidationError("Missing booking ID")
        set_request_id(f"{self.request_prefix}-{booking_id}-{uuid.uuid4().hex[:6]}")

    async def _load_booking(self, booking_id: str) -> Booking:
        booking = await self._store.get(booking_id)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking
