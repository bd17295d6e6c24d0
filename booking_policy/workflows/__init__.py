from booking_policy.workflows.cancellation import CancellationWorkflow, resolve_refund_percentage
from booking_policy.workflows.notifications import Channel, NotificationEvent, NotificationFanout
from booking_policy.workflows.refund_orchestrator import (
    RefundOrchestrator,
    compute_refund_amount,
    refund_idempotency_key,
)
from booking_policy.workflows.reschedule import RescheduleWorkflow

__all__ = [
    "CancellationWorkflow",
    "RescheduleWorkflow",
    "RefundOrchestrator",
    "NotificationFanout",
    "NotificationEvent",
    "Channel",
    "resolve_refund_percentage",
    "compute_refund_amount",
    "refund_idempotency_key",
]
