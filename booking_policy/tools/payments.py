"""
Mock payment provider.

In production this wraps the Omise charges/refunds API. The mock honours
idempotency keys the same way: a repeated key returns the first result
instead of moving money twice.
"""

import logging
import uuid
from typing import Optional

from booking_policy.schemas.refund_schema import ProviderResult

logger = logging.getLogger(__name__)


class MockPaymentProvider:
    """PaymentProvider that records calls and can be told to fail."""

    def __init__(self, fail_refunds: bool = False, fail_charges: bool = False) -> None:
        self.fail_refunds = fail_refunds
        self.fail_charges = fail_charges
        self.refund_calls: list[dict] = []
        self.charge_calls: list[dict] = []
        self._results: dict[str, ProviderResult] = {}

    def _replay(self, idempotency_key: str) -> Optional[ProviderResult]:
        result = self._results.get(idempotency_key)
        if result is not None:
            logger.info("Idempotent replay for key %s", idempotency_key)
        return result

    async def refund(
        self, provider_charge_ref: str, amount_minor: int, idempotency_key: str
    ) -> ProviderResult:
        self.refund_calls.append({
            "charge": provider_charge_ref,
            "amount_minor": amount_minor,
            "idempotency_key": idempotency_key,
        })
        replay = self._replay(idempotency_key)
        if replay is not None:
            return replay
        if self.fail_refunds:
            # Failed attempts are not cached so a later retry can succeed.
            return ProviderResult(success=False, error="refund declined by provider")
        result = ProviderResult(success=True, provider_ref=f"rfnd_mock_{uuid.uuid4().hex[:12]}")
        self._results[idempotency_key] = result
        logger.info(
            "Refunded %d minor units on %s (%s)",
            amount_minor, provider_charge_ref, result.provider_ref,
        )
        return result

    async def charge(
        self, customer_id: str, amount_minor: int, idempotency_key: str, description: str
    ) -> ProviderResult:
        self.charge_calls.append({
            "customer_id": customer_id,
            "amount_minor": amount_minor,
            "idempotency_key": idempotency_key,
            "description": description,
        })
        replay = self._replay(idempotency_key)
        if replay is not None:
            return replay
        if self.fail_charges:
            return ProviderResult(success=False, error="card declined")
        result = ProviderResult(success=True, provider_ref=f"chrg_mock_{uuid.uuid4().hex[:12]}")
        self._results[idempotency_key] = result
        return result

    @property
    def distinct_refunds(self) -> int:
        """Number of refunds that actually moved money."""
        return sum(1 for r in self._results.values() if r.provider_ref.startswith("rfnd_"))
