"""Motion state machine — enforces valid lifecycle transitions.

Motion lifecycle:
    OPEN ⇄ FROZEN
    OPEN | FROZEN → CLOSED     (successful ballot outcome)
    OPEN | FROZEN → CANCELLED  (cancelled ballot or withdrawal)
    CLOSED | CANCELLED → ARCHIVED

Fail-closed: there are no implicit transitions. Closing or cancelling a
motion that is already closed or cancelled raises AlreadyTerminalError.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from govtree.errors import AlreadyTerminalError, InvalidTransitionError
from govtree.models.motion import Motion, MotionState


# Valid transitions: {from_state: {allowed_to_states}}
_TRANSITIONS: dict[MotionState, set[MotionState]] = {
    MotionState.OPEN: {
        MotionState.FROZEN,
        MotionState.CLOSED,
        MotionState.CANCELLED,
    },
    MotionState.FROZEN: {
        MotionState.OPEN,
        MotionState.CLOSED,
        MotionState.CANCELLED,
    },
    MotionState.CLOSED: {MotionState.ARCHIVED},
    MotionState.CANCELLED: {MotionState.ARCHIVED},
    # Archived is final
    MotionState.ARCHIVED: set(),
}


class MotionStateMachine:
    """Validates and applies motion state transitions.

    Pure computation on the Motion object. Persistence is handled by
    the motion store.
    """

    @staticmethod
    def validate_transition(motion: Motion, target: MotionState) -> list[str]:
        """Check if a transition is valid. Returns errors (empty = OK)."""
        current = motion.state
        allowed = _TRANSITIONS.get(current, set())
        if target not in allowed:
            allowed_str = ", ".join(s.value for s in sorted(allowed, key=lambda x: x.value))
            return [
                f"Invalid motion transition: {current.value} → {target.value}. "
                f"Allowed from {current.value}: [{allowed_str}]"
            ]
        return []

    @staticmethod
    def apply_transition(
        motion: Motion,
        target: MotionState,
        now: Optional[datetime] = None,
    ) -> None:
        """Validate and apply a transition by setting the motion's flags."""
        if target in (MotionState.CLOSED, MotionState.CANCELLED) and motion.is_terminal:
            raise AlreadyTerminalError(
                f"Motion {motion.motion_id} is already {motion.state.value}"
            )
        errors = MotionStateMachine.validate_transition(motion, target)
        if errors:
            raise InvalidTransitionError(errors[0])

        if target == MotionState.FROZEN:
            motion.frozen = True
        elif target == MotionState.OPEN:
            motion.frozen = False
        elif target == MotionState.CLOSED:
            motion.closed = True
            motion.closed_utc = now or datetime.now(timezone.utc)
        elif target == MotionState.CANCELLED:
            motion.cancelled = True
            motion.closed_utc = now or datetime.now(timezone.utc)
        elif target == MotionState.ARCHIVED:
            motion.archived = True

    @staticmethod
    def is_terminal(state: MotionState) -> bool:
        return state in (MotionState.CLOSED, MotionState.CANCELLED, MotionState.ARCHIVED)

    @staticmethod
    def valid_transitions(state: MotionState) -> set[MotionState]:
        """Return the set of valid target states from the given state."""
        return set(_TRANSITIONS.get(state, set()))
