"""
In-memory refund transaction ledger.

In production this is the ``refund_transactions`` table read by the
operator reconciliation screen.
"""

import logging
from typing import Optional

from booking_policy.schemas.refund_schema import RefundTransaction

logger = logging.getLogger(__name__)


class InMemoryRefundLedger:
    """Dict-backed RefundLedger keyed by refund transaction id."""

    def __init__(self) -> None:
        self._rows: dict[str, RefundTransaction] = {}

    async def create(self, transaction: RefundTransaction) -> RefundTransaction:
        if transaction.id in self._rows:
            raise ValueError(f"Refund transaction {transaction.id} already exists")
        self._rows[transaction.id] = transaction.model_copy()
        logger.debug("Refund transaction created: %s", transaction.id)
        return transaction

    async def update(self, transaction: RefundTransaction) -> RefundTransaction:
        self._rows[transaction.id] = transaction.model_copy()
        return transaction

    async def get(self, refund_transaction_id: str) -> Optional[RefundTransaction]:
        row = self._rows.get(refund_transaction_id)
        return row.model_copy() if row else None

    async def list_for_booking(self, booking_id: str) -> list[RefundTransaction]:
        rows = [r for r in self._rows.values() if r.booking_id == booking_id]
        return sorted((r.model_copy() for r in rows), key=lambda r: r.created_at)

    def all(self) -> list[RefundTransaction]:
        return list(self._rows.values())
