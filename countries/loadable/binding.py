"""Publish-subscribe primitives: cancellable handles, subjects, bindings."""

import threading
from collections.abc import Callable
from typing import Generic, TypeVar

import structlog


logger = structlog.get_logger()

T = TypeVar("T")


class Cancellable:
    """Handle that stops a subscription or a pending piece of work.

    The cancel action runs at most once, no matter how many times
    ``cancel`` is called.
    """

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        """Initialize the handle.

        Args:
            on_cancel: Action to run on the first ``cancel`` call.
        """
        self._on_cancel = on_cancel
        self._cancelled = False
        self._lock = threading.Lock()

    @classmethod
    def cancelled(cls) -> "Cancellable":
        """Create a handle that is already cancelled."""
        handle = cls()
        handle.cancel()
        return handle

    @property
    def is_cancelled(self) -> bool:
        """Check whether ``cancel`` has been called."""
        return self._cancelled

    def cancel(self) -> None:
        """Cancel, running the cancel action on the first call only."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            action, self._on_cancel = self._on_cancel, None
        if action is not None:
            action()


class Subject(Generic[T]):
    """Fan-out of emitted values to subscribers.

    Subscribers are called synchronously on the emitting thread, in
    subscription order. Nothing is stored between emissions.
    """

    def __init__(self) -> None:
        self._subscribers: dict[int, Callable[[T], None]] = {}
        self._next_id = 0
        self._lock = threading.Lock()

    @property
    def subscriber_count(self) -> int:
        """Get the number of live subscriptions."""
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, callback: Callable[[T], None]) -> Cancellable:
        """Register a callback for future emissions.

        Args:
            callback: Called with each emitted value.

        Returns:
            Handle that removes the subscription when cancelled.
        """
        with self._lock:
            token = self._next_id
            self._next_id += 1
            self._subscribers[token] = callback
        return Cancellable(lambda: self._unsubscribe(token))

    def _unsubscribe(self, token: int) -> None:
        with self._lock:
            self._subscribers.pop(token, None)

    def send(self, value: T) -> None:
        """Emit a value to every current subscriber."""
        with self._lock:
            callbacks = list(self._subscribers.values())
        for callback in callbacks:
            callback(value)


class Binding(Subject[T]):
    """Mutable value slot that notifies subscribers on every write.

    The owner of the slot reads ``value`` for rendering; producers
    write ``value`` from the context that owns the slot.
    """

    def __init__(self, initial: T) -> None:
        """Initialize the binding.

        Args:
            initial: Starting value of the slot.
        """
        super().__init__()
        self._value = initial

    @property
    def value(self) -> T:
        """Get the current value."""
        return self._value

    @value.setter
    def value(self, new_value: T) -> None:
        self._value = new_value
        self.send(new_value)

    def record(self) -> list[T]:
        """Start recording every subsequent write.

        Returns:
            List that grows with each written value.
        """
        history: list[T] = []
        self.subscribe(history.append)
        return history
