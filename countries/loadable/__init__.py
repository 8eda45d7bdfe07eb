"""Observable loading state for asynchronously fetched values."""

from countries.loadable.binding import Binding, Cancellable, Subject
from countries.loadable.models import (
    Failed,
    IsLoading,
    Loadable,
    Loaded,
    NotRequested,
)
from countries.loadable.state_machine import (
    LoadableState,
    LoadableTransitions,
    can_transition,
)


__all__ = [
    # Models
    "Failed",
    "IsLoading",
    "Loadable",
    "Loaded",
    "NotRequested",
    # State machine
    "LoadableState",
    "LoadableTransitions",
    "can_transition",
    # Binding
    "Binding",
    "Cancellable",
    "Subject",
]
