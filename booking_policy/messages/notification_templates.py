"""Notification payload and message construction for cancellation/reschedule events."""

from datetime import date, time
from typing import Any, Optional

from booking_policy.schemas.booking_schema import Booking
from booking_policy.schemas.refund_schema import RefundOutcome


def _slot(day: date, at: time) -> str:
    return f"{day.isoformat()} {at.strftime('%H:%M')}"


def build_cancellation_message(
    booking: Booking, reason: str, refund: Optional[RefundOutcome], processing_days: int
) -> str:
    """Customer-facing text for a cancelled booking."""
    lines = [
        f"การจอง {booking.booking_number or booking.id} ถูกยกเลิก",
        f"{booking.service_name} {_slot(booking.booking_date, booking.booking_time)}".strip(),
        f"เหตุผล: {reason}",
    ]
    if refund and refund.success and refund.refund_amount > 0:
        lines.append(
            f"จะได้รับเงินคืน {refund.refund_amount} บาท ({refund.refund_percentage}%) "
            f"ภายใน {processing_days} วันทำการ"
        )
    return "\n".join(lines)


def build_cancellation_payload(
    booking: Booking,
    reason: str,
    refund: Optional[RefundOutcome],
    processing_days: int,
    support_email: str = "",
    support_phone: str = "",
    currency: str = "THB",
) -> dict[str, Any]:
    """Payload shared by every cancellation channel."""
    refund_info = None
    if refund is not None:
        refund_info = {
            "success": refund.success,
            "amount": str(refund.refund_amount),
            "currency": currency,
            "percentage": refund.refund_percentage,
            "expected_days": processing_days,
        }
    return {
        "booking_id": booking.id,
        "booking_number": booking.booking_number,
        "service_name": booking.service_name,
        "scheduled_date": booking.booking_date.isoformat(),
        "scheduled_time": booking.booking_time.strftime("%H:%M"),
        "customer_id": booking.customer_id,
        "staff_id": booking.staff_id,
        "hotel_id": booking.hotel_id,
        "cancellation_reason": reason,
        "refund": refund_info,
        "support_email": support_email,
        "support_phone": support_phone,
        "message": build_cancellation_message(booking, reason, refund, processing_days),
    }


def build_reschedule_message(before: Booking, after: Booking) -> str:
    """Staff-facing text: the job moved and must be accepted again."""
    return (
        f"ลูกค้าเลื่อนนัด {before.service_name}\n"
        f"จาก {_slot(before.booking_date, before.booking_time)} "
        f"เป็น {_slot(after.booking_date, after.booking_time)}\n"
        "กรุณากดรับงานใหม่"
    )


def build_reschedule_payload(before: Booking, after: Booking) -> dict[str, Any]:
    """Payload for the staff LINE and in-app channels.

    ``former_staff_id`` is the staff member released by the reschedule;
    the booking itself no longer references them.
    """
    return {
        "booking_id": after.id,
        "booking_number": after.booking_number,
        "service_name": after.service_name,
        "former_staff_id": before.staff_id,
        "old_date": before.booking_date.isoformat(),
        "old_time": before.booking_time.strftime("%H:%M"),
        "new_date": after.booking_date.isoformat(),
        "new_time": after.booking_time.strftime("%H:%M"),
        "message": build_reschedule_message(before, after),
    }
