"""Readiness gate: defers operations until a resource finishes opening."""

import threading
from collections.abc import Callable

import structlog

from countries.store.errors import StoreStateError
from countries.store.state_machine import StoreState, StoreStateMachine


logger = structlog.get_logger()

GateCallback = Callable[[BaseException | None], None]


class ReadinessGate:
    """Single-assignment readiness value with a queue of deferred callbacks.

    Callbacks registered while initializing are queued and released in
    registration order when the gate settles. Callbacks registered
    afterwards run immediately. Each callback receives None once the
    gate is open, or the terminal error if opening failed.
    """

    def __init__(self) -> None:
        self._machine = StoreStateMachine()
        self._error: BaseException | None = None
        self._pending: list[GateCallback] = []
        self._draining = False
        self._lock = threading.Lock()
        self._log = logger.bind(component="store")

    @property
    def state(self) -> StoreState:
        """Get the current readiness state."""
        return self._machine.state

    @property
    def error(self) -> BaseException | None:
        """Get the terminal error, if opening failed."""
        return self._error

    @property
    def pending_count(self) -> int:
        """Get the number of callbacks waiting for the gate."""
        with self._lock:
            return len(self._pending)

    def when_ready(self, callback: GateCallback) -> None:
        """Run ``callback`` once the gate settles.

        Args:
            callback: Receives None when ready, or the terminal error.
        """
        with self._lock:
            if self._draining or not self._machine.is_terminal():
                self._pending.append(callback)
                return
            error = self._error
        callback(error)

    def open(self) -> None:
        """Mark the resource ready and release queued callbacks.

        Raises:
            StoreStateError: If the gate already settled.
        """
        self._settle(StoreState.READY, None)

    def fail(self, error: BaseException) -> None:
        """Mark the resource permanently failed and fail queued callbacks.

        Raises:
            StoreStateError: If the gate already settled.
        """
        self._settle(StoreState.FAILED_TO_OPEN, error)

    def _settle(self, state: StoreState, error: BaseException | None) -> None:
        with self._lock:
            if self._machine.is_terminal():
                msg = f"Readiness gate already settled as {self._machine.state.name}"
                raise StoreStateError(msg)
            self._machine.transition(state)
            self._error = error
            self._draining = True

        self._log.info("readiness_gate_settled", state=state.name)

        # Callbacks registered while draining join the queue to keep FIFO order
        released = 0
        try:
            while True:
                with self._lock:
                    batch, self._pending = self._pending, []
                    if not batch:
                        self._draining = False
                        break
                for callback in batch:
                    try:
                        callback(error)
                    except Exception:
                        # One failing callback must not strand the rest
                        self._log.exception("gate_callback_failed")
                released += len(batch)
        finally:
            with self._lock:
                # Also reset when a callback raised BaseException
                self._draining = False

        self._log.debug("readiness_gate_drained", released=released)
