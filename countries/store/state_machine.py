"""Store readiness state machine."""

from enum import Enum, auto
from typing import ClassVar

import structlog

from countries.store.errors import StoreStateError


logger = structlog.get_logger()


class StoreState(Enum):
    """Store lifecycle states.

    State transitions:
        INITIALIZING -> READY: The database opened and migrations applied
        INITIALIZING -> FAILED_TO_OPEN: Opening failed (terminal, no re-open)
    """

    INITIALIZING = auto()
    READY = auto()
    FAILED_TO_OPEN = auto()


class StoreStateMachine:
    """State machine for store readiness.

    Once settled the state never changes again.
    """

    VALID_TRANSITIONS: ClassVar[dict[StoreState, set[StoreState]]] = {
        StoreState.INITIALIZING: {
            StoreState.READY,
            StoreState.FAILED_TO_OPEN,
        },
        StoreState.READY: set(),  # Terminal state
        StoreState.FAILED_TO_OPEN: set(),  # Terminal state
    }

    def __init__(self) -> None:
        """Initialize the state machine in INITIALIZING state."""
        self._state = StoreState.INITIALIZING
        self._log = logger.bind(component="store")

    @property
    def state(self) -> StoreState:
        """Get the current state."""
        return self._state

    def can_transition(self, to_state: StoreState) -> bool:
        """Check if a transition to the given state is valid."""
        return to_state in self.VALID_TRANSITIONS.get(self._state, set())

    def transition(self, to_state: StoreState) -> None:
        """Transition to a new state.

        Args:
            to_state: The target state.

        Raises:
            StoreStateError: If the transition is invalid.
        """
        if not self.can_transition(to_state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_state_transition",
                from_state=self._state.name,
                to_state=to_state.name,
            )
            msg = (
                f"Invalid store state transition: "
                f"{self._state.name} -> {to_state.name}"
            )
            raise StoreStateError(msg)

        old_state = self._state
        self._state = to_state
        self._log.info(
            "store_state_transition",
            from_state=old_state.name,
            to_state=to_state.name,
        )

    def is_terminal(self) -> bool:
        """Check if the store finished initializing, either way."""
        return self._state != StoreState.INITIALIZING
