"""
Finite state machine for the cancellation and reschedule workflows.

Each request walks a fixed path through the state graph:

    requested -> eligibility_checked -> rejected | committed
    committed -> refund_attempted (optional) -> notifications_sent -> done

The machine makes the commit point explicit: once ``committed`` is entered
there is no path back to ``rejected``, so later failures (refund, channels)
can only be recorded, never undo the status change.

Usage:
    sm = WorkflowStateMachine()
    sm.transition(WorkflowTrigger.ELIGIBILITY_EVALUATED)
    assert sm.current_state == WorkflowState.ELIGIBILITY_CHECKED
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class WorkflowState(str, Enum):
    """All possible states of one cancellation/reschedule request."""
    REQUESTED = "requested"
    ELIGIBILITY_CHECKED = "eligibility_checked"
    REJECTED = "rejected"
    COMMITTED = "committed"
    REFUND_ATTEMPTED = "refund_attempted"
    NOTIFICATIONS_SENT = "notifications_sent"
    DONE = "done"


class WorkflowTrigger(str, Enum):
    """Events that cause state transitions."""
    ELIGIBILITY_EVALUATED = "eligibility_evaluated"
    INELIGIBLE = "ineligible"
    ALREADY_FINALIZED = "already_finalized"
    STATUS_COMMITTED = "status_committed"
    PAYMENT_ATTEMPTED = "payment_attempted"
    NOTIFICATIONS_DISPATCHED = "notifications_dispatched"
    FINISHED = "finished"


@dataclass
class Transition:
    """A single valid state transition."""
    from_state: WorkflowState
    to_state: WorkflowState
    trigger: WorkflowTrigger


@dataclass
class StateEntry:
    """Recorded history entry for a state visit."""
    state: WorkflowState
    entered_at: datetime
    trigger: Optional[WorkflowTrigger] = None


class InvalidTransitionError(Exception):
    """Raised when a transition is not valid from the current state."""


class WorkflowStateMachine:
    """Deterministic state machine guarding the workflow commit point."""

    TRANSITIONS: list[Transition] = [
        Transition(WorkflowState.REQUESTED, WorkflowState.ELIGIBILITY_CHECKED,
                   WorkflowTrigger.ELIGIBILITY_EVALUATED),

        # --- Decision ---
        Transition(WorkflowState.ELIGIBILITY_CHECKED, WorkflowState.REJECTED,
                   WorkflowTrigger.INELIGIBLE),
        Transition(WorkflowState.ELIGIBILITY_CHECKED, WorkflowState.REJECTED,
                   WorkflowTrigger.ALREADY_FINALIZED),
        Transition(WorkflowState.ELIGIBILITY_CHECKED, WorkflowState.COMMITTED,
                   WorkflowTrigger.STATUS_COMMITTED),

        # --- After commit ---
        Transition(WorkflowState.COMMITTED, WorkflowState.REFUND_ATTEMPTED,
                   WorkflowTrigger.PAYMENT_ATTEMPTED),
        Transition(WorkflowState.COMMITTED, WorkflowState.NOTIFICATIONS_SENT,
                   WorkflowTrigger.NOTIFICATIONS_DISPATCHED),
        Transition(WorkflowState.REFUND_ATTEMPTED, WorkflowState.NOTIFICATIONS_SENT,
                   WorkflowTrigger.NOTIFICATIONS_DISPATCHED),

        # --- Terminal ---
        Transition(WorkflowState.NOTIFICATIONS_SENT, WorkflowState.DONE,
                   WorkflowTrigger.FINISHED),
        Transition(WorkflowState.REJECTED, WorkflowState.DONE,
                   WorkflowTrigger.FINISHED),
    ]

    def __init__(self) -> None:
        self._current_state = WorkflowState.REQUESTED
        self._history: list[StateEntry] = [
            StateEntry(state=WorkflowState.REQUESTED, entered_at=datetime.now(timezone.utc))
        ]

    @property
    def current_state(self) -> WorkflowState:
        return self._current_state

    @property
    def committed(self) -> bool:
        return WorkflowState.COMMITTED in (e.state for e in self._history)

    def transition(self, trigger: WorkflowTrigger) -> WorkflowState:
        """
        Execute a state transition.

        Raises:
            InvalidTransitionError: If no valid transition exists.
        """
        for t in self.TRANSITIONS:
            if t.from_state == self._current_state and t.trigger == trigger:
                old_state = self._current_state
                self._current_state = t.to_state
                self._history.append(StateEntry(
                    state=self._current_state,
                    entered_at=datetime.now(timezone.utc),
                    trigger=trigger,
                ))
                logger.debug(
                    "Workflow transition: %s -> %s (trigger: %s)",
                    old_state.value, self._current_state.value, trigger.value,
                )
                return self._current_state

        valid = [t.value for t in self.get_valid_triggers()]
        raise InvalidTransitionError(
            f"No valid transition from '{self._current_state.value}' "
            f"with trigger '{trigger.value}'. Valid triggers: {valid}"
        )

    def get_valid_triggers(self) -> list[WorkflowTrigger]:
        """Return all triggers valid from the current state."""
        return [t.trigger for t in self.TRANSITIONS if t.from_state == self._current_state]

    def get_history(self) -> list[StateEntry]:
        return list(self._history)

    def get_state_trace(self) -> list[str]:
        """Return ordered list of state names visited."""
        return [entry.state.value for entry in self._history]

    def is_terminal(self) -> bool:
        return self._current_state == WorkflowState.DONE
