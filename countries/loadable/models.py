"""Four-state wrapper for asynchronously fetched values."""

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from countries.loadable.state_machine import LoadableState


T = TypeVar("T")


@dataclass(frozen=True)
class NotRequested(Generic[T]):
    """Nothing has been requested yet."""

    @property
    def state(self) -> LoadableState:
        """Get the lifecycle state."""
        return LoadableState.NOT_REQUESTED

    @property
    def value(self) -> T | None:
        """No value is available."""
        return None

    @property
    def error(self) -> Exception | None:
        """No error is available."""
        return None


@dataclass(frozen=True)
class IsLoading(Generic[T]):
    """A load is in flight.

    Attributes:
        last: The previously loaded value, kept visible during a refresh.
    """

    last: T | None = None

    @property
    def state(self) -> LoadableState:
        """Get the lifecycle state."""
        return LoadableState.IS_LOADING

    @property
    def value(self) -> T | None:
        """Get the value from before the refresh, if any."""
        return self.last

    @property
    def error(self) -> Exception | None:
        """No error while loading."""
        return None


@dataclass(frozen=True)
class Loaded(Generic[T]):
    """The value arrived."""

    value: T

    @property
    def state(self) -> LoadableState:
        """Get the lifecycle state."""
        return LoadableState.LOADED

    @property
    def error(self) -> Exception | None:
        """No error for a loaded value."""
        return None


@dataclass(frozen=True, eq=False)
class Failed(Generic[T]):
    """The load failed.

    Two failures are equal when their errors share type and message.
    """

    error: Exception

    @property
    def state(self) -> LoadableState:
        """Get the lifecycle state."""
        return LoadableState.FAILED

    @property
    def value(self) -> T | None:
        """No value for a failed load."""
        return None

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Failed):
            return NotImplemented
        return type(self.error) is type(other.error) and str(self.error) == str(
            other.error
        )

    def __hash__(self) -> int:
        return hash((type(self.error), str(self.error)))


Loadable = NotRequested[T] | IsLoading[T] | Loaded[T] | Failed[T]
