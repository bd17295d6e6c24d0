"""
Notification fan-out: deliver one event to several independent channels.

Channels are sent concurrently and each send is isolated. An exception,
a ``False`` return, a timeout or a missing client only marks that channel
``False``; the remaining channels still run and ``notify`` never raises.
There are no retries here; backoff belongs to the channel client.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Mapping, Optional, Sequence

from booking_policy.config import settings
from booking_policy.interfaces import NotificationChannel
from booking_policy.logging_context import get_request_logger
from booking_policy.schemas.booking_schema import Booking

logger = get_request_logger(__name__)


class NotificationEvent(str, Enum):
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_RESCHEDULED = "booking_rescheduled"


class Channel(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    HOTEL = "hotel"
    ADMIN = "admin"
    STAFF_LINE = "staff_line"
    STAFF_IN_APP = "staff_in_app"


def default_channels(
    event: NotificationEvent,
    booking: Booking,
    payload: Mapping[str, Any],
    include_admin: Optional[bool] = None,
) -> list[str]:
    """Event-specific channel list for a booking."""
    if include_admin is None:
        include_admin = settings.notifications.notify_admin

    if event == NotificationEvent.BOOKING_CANCELLED:
        channels = [Channel.CUSTOMER.value]
        if booking.staff_id:
            channels.append(Channel.STAFF.value)
        if booking.hotel_id:
            channels.append(Channel.HOTEL.value)
        if include_admin:
            channels.append(Channel.ADMIN.value)
        return channels

    if event == NotificationEvent.BOOKING_RESCHEDULED:
        if not payload.get("former_staff_id"):
            logger.info("No staff was assigned to %s; skipping reschedule notices", booking.id)
            return []
        return [Channel.STAFF_LINE.value, Channel.STAFF_IN_APP.value]

    raise ValueError(f"Unknown notification event: {event!r}")


class NotificationFanout:
    """Sends an event to every relevant channel and reports per-channel outcomes."""

    def __init__(
        self,
        clients: Mapping[str, NotificationChannel],
        timeout_sec: Optional[float] = None,
        include_admin: Optional[bool] = None,
    ) -> None:
        self._clients = dict(clients)
        self._timeout = timeout_sec or settings.notifications.channel_timeout_sec
        self._include_admin = include_admin

    async def notify(
        self,
        event: NotificationEvent,
        booking: Booking,
        payload: dict[str, Any],
        channels: Optional[Sequence[str]] = None,
    ) -> dict[str, bool]:
        """Send ``event`` to each channel and return ``{channel: delivered}``."""
        if channels is None:
            channels = default_channels(event, booking, payload, self._include_admin)
        if not channels:
            return {}

        results = await asyncio.gather(
            *(self._send_one(channel, event, payload) for channel in channels)
        )
        outcome = dict(zip(channels, results))

        failed = [c for c, ok in outcome.items() if not ok]
        if failed:
            logger.warning(
                "Notification %s for %s failed on: %s", event.value, booking.id, ", ".join(failed)
            )
        else:
            logger.info("Notification %s for %s delivered to %d channel(s)",
                        event.value, booking.id, len(outcome))
        return outcome

    async def _send_one(
        self, channel: str, event: NotificationEvent, payload: dict[str, Any]
    ) -> bool:
        client = self._clients.get(channel)
        if client is None:
            logger.warning("No client configured for channel '%s'", channel)
            return False
        try:
            delivered = await asyncio.wait_for(
                client.send(event.value, dict(payload, channel=channel)),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Channel '%s' timed out after %.1fs", channel, self._timeout)
            return False
        except Exception:
            logger.exception("Channel '%s' raised while sending %s", channel, event.value)
            return False
        return bool(delivered)
