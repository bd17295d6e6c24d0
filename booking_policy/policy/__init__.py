from booking_policy.policy.evaluator import evaluate, evaluate_booking, find_tier
from booking_policy.policy.state_machine import (
    InvalidTransitionError,
    WorkflowState,
    WorkflowStateMachine,
    WorkflowTrigger,
)
from booking_policy.policy.tiers import default_policy, require_valid_policy, validate_policy

__all__ = [
    "evaluate",
    "evaluate_booking",
    "find_tier",
    "WorkflowStateMachine",
    "WorkflowState",
    "WorkflowTrigger",
    "InvalidTransitionError",
    "default_policy",
    "validate_policy",
    "require_valid_policy",
]
