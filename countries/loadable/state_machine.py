"""Loadable lifecycle states and their allowed transitions."""

from enum import Enum, auto
from typing import ClassVar


class LoadableState(Enum):
    """Lifecycle states of an asynchronously loaded value.

    State transitions:
        NOT_REQUESTED -> IS_LOADING: A load was started
        IS_LOADING -> LOADED: The value arrived
        IS_LOADING -> FAILED: The load failed
        LOADED/FAILED -> IS_LOADING: A refresh was started
        IS_LOADING -> IS_LOADING: A new load replaced a pending one
        any -> NOT_REQUESTED: The request was reset (no source to load)
    """

    NOT_REQUESTED = auto()
    IS_LOADING = auto()
    LOADED = auto()
    FAILED = auto()


class LoadableTransitions:
    """Table of valid Loadable state transitions."""

    VALID_TRANSITIONS: ClassVar[dict[LoadableState, set[LoadableState]]] = {
        LoadableState.NOT_REQUESTED: {
            LoadableState.NOT_REQUESTED,
            LoadableState.IS_LOADING,
        },
        LoadableState.IS_LOADING: {
            LoadableState.IS_LOADING,
            LoadableState.LOADED,
            LoadableState.FAILED,
            LoadableState.NOT_REQUESTED,
        },
        LoadableState.LOADED: {
            LoadableState.IS_LOADING,
            LoadableState.NOT_REQUESTED,
        },
        LoadableState.FAILED: {
            LoadableState.IS_LOADING,
            LoadableState.NOT_REQUESTED,
        },
    }

    @classmethod
    def can_transition(
        cls, from_state: LoadableState, to_state: LoadableState
    ) -> bool:
        """Check if a transition between two states is valid.

        Args:
            from_state: The current state.
            to_state: The target state.

        Returns:
            True if the transition is valid, False otherwise.
        """
        return to_state in cls.VALID_TRANSITIONS.get(from_state, set())


def can_transition(from_state: LoadableState, to_state: LoadableState) -> bool:
    """Module-level shortcut for ``LoadableTransitions.can_transition``."""
    return LoadableTransitions.can_transition(from_state, to_state)
