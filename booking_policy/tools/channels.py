"""
Logging notification channels and credit-note generator.

In production the channels are the customer push/email sender, the staff
LINE Messaging API client, the staff in-app notifications table, the hotel
partner email, and the admin dashboard feed. These stand-ins log and
record what they were asked to deliver.
"""

import logging
from typing import Any

logger = logging.getLogger(__name__)


class LoggingChannel:
    """NotificationChannel that records every delivery and reports success."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.sent: list[tuple[str, dict[str, Any]]] = []

    async def send(self, event: str, payload: dict[str, Any]) -> bool:
        self.sent.append((event, payload))
        logger.info("[%s] %s -> %s", self.name, event, payload.get("booking_id"))
        return True


class LoggingDocumentGenerator:
    """DocumentGenerator that records which credit notes were requested."""

    def __init__(self) -> None:
        self.generated: list[str] = []

    async def generate_and_email_credit_note(self, refund_transaction_id: str) -> None:
        self.generated.append(refund_transaction_id)
        logger.info("Credit note queued for refund %s", refund_transaction_id)
