"""
Order placement state machine.

Responsibility:
    Tracks one order transition (placement, amendment or cancellation)
    through ``PENDING -> VALIDATED -> APPLIED -> LOGGED``, or to ``REJECTED``
    from any non-terminal state.  The coordinator advances it as each step
    of the atomic unit completes; the recorded history is returned to the
    caller in ``OrderResult``.

Architecture position:
    Kernel > Domain -- pure, no I/O.

Invariants enforced:
    - Only transitions listed in ``PLACEMENT_TRANSITIONS`` are legal.
    - LOGGED and REJECTED are terminal.

Failure modes:
    - InvalidPlacementTransitionError on any other transition.
"""

from __future__ import annotations

from enum import Enum

from farmstock_kernel.exceptions import InvalidPlacementTransitionError


class PlacementState(str, Enum):
    PENDING = "pending"
    VALIDATED = "validated"
    APPLIED = "applied"
    LOGGED = "logged"
    REJECTED = "rejected"


PLACEMENT_TRANSITIONS: dict[PlacementState, frozenset[PlacementState]] = {
    PlacementState.PENDING: frozenset({
        PlacementState.VALIDATED, PlacementState.REJECTED,
    }),
    PlacementState.VALIDATED: frozenset({
        PlacementState.APPLIED, PlacementState.REJECTED,
    }),
    PlacementState.APPLIED: frozenset({
        PlacementState.LOGGED, PlacementState.REJECTED,
    }),
    # Terminal states
    PlacementState.LOGGED: frozenset(),
    PlacementState.REJECTED: frozenset(),
}


class OrderPlacement:
    """Mutable tracker for a single order transition."""

    def __init__(self) -> None:
        self._state = PlacementState.PENDING
        self._history: list[PlacementState] = [PlacementState.PENDING]

    @property
    def state(self) -> PlacementState:
        return self._state

    @property
    def history(self) -> tuple[str, ...]:
        return tuple(state.value for state in self._history)

    @property
    def is_terminal(self) -> bool:
        return not PLACEMENT_TRANSITIONS[self._state]

    def advance(self, target: PlacementState) -> PlacementState:
        allowed = PLACEMENT_TRANSITIONS.get(self._state, frozenset())
        if target not in allowed:
            raise InvalidPlacementTransitionError(self._state.value, target.value)
        self._state = target
        self._history.append(target)
        return target

    def mark_validated(self) -> PlacementState:
        return self.advance(PlacementState.VALIDATED)

    def mark_applied(self) -> PlacementState:
        return self.advance(PlacementState.APPLIED)

    def mark_logged(self) -> PlacementState:
        return self.advance(PlacementState.LOGGED)

    def reject(self) -> PlacementState:
        """Move to REJECTED.  Rejecting an already rejected placement is a no-op."""
        if self._state == PlacementState.REJECTED:
            return self._state
        return self.advance(PlacementState.REJECTED)

    def __repr__(self) -> str:
        return f"<OrderPlacement {self._state.value}>"
