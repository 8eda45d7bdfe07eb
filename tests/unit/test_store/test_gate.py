"""Unit tests for the readiness gate and store state machine."""

import pytest

from countries.store.errors import StoreOpenError, StoreStateError
from countries.store.gate import ReadinessGate
from countries.store.state_machine import StoreState, StoreStateMachine


class TestStoreStateMachine:
    """Tests for store readiness transitions."""

    @pytest.mark.unit
    def test_starts_initializing(self) -> None:
        """A new machine is not terminal."""
        machine = StoreStateMachine()

        assert machine.state == StoreState.INITIALIZING
        assert not machine.is_terminal()

    @pytest.mark.unit
    @pytest.mark.parametrize("target", [StoreState.READY, StoreState.FAILED_TO_OPEN])
    def test_settles_once(self, target: StoreState) -> None:
        """Both outcomes are terminal."""
        machine = StoreStateMachine()

        machine.transition(target)

        assert machine.state == target
        assert machine.is_terminal()
        for other in StoreState:
            assert not machine.can_transition(other)

    @pytest.mark.unit
    def test_invalid_transition_raises(self) -> None:
        """Re-opening a failed store is rejected."""
        machine = StoreStateMachine()
        machine.transition(StoreState.FAILED_TO_OPEN)

        with pytest.raises(StoreStateError, match="FAILED_TO_OPEN -> READY"):
            machine.transition(StoreState.READY)


class TestReadinessGate:
    """Tests for deferring callbacks until the gate settles."""

    @pytest.mark.unit
    def test_callbacks_wait_for_open(self) -> None:
        """Nothing runs while initializing."""
        gate = ReadinessGate()
        calls: list[object] = []

        gate.when_ready(calls.append)

        assert calls == []
        assert gate.pending_count == 1

    @pytest.mark.unit
    def test_open_releases_in_registration_order(self) -> None:
        """Queued callbacks run first-in first-out with no error."""
        gate = ReadinessGate()
        order: list[tuple[int, object]] = []
        for index in range(3):
            gate.when_ready(lambda error, i=index: order.append((i, error)))

        gate.open()

        assert order == [(0, None), (1, None), (2, None)]
        assert gate.state == StoreState.READY
        assert gate.pending_count == 0

    @pytest.mark.unit
    def test_after_open_runs_immediately(self) -> None:
        """Callbacks registered on an open gate run at once."""
        gate = ReadinessGate()
        gate.open()
        calls: list[object] = []

        gate.when_ready(calls.append)

        assert calls == [None]

    @pytest.mark.unit
    def test_fail_passes_error_to_queued_and_later_callbacks(self) -> None:
        """A failed gate fails every operation with the same error."""
        gate = ReadinessGate()
        error = StoreOpenError("/tmp/db.sql", "disk full")
        calls: list[object] = []
        gate.when_ready(calls.append)

        gate.fail(error)
        gate.when_ready(calls.append)

        assert calls == [error, error]
        assert gate.error is error
        assert gate.state == StoreState.FAILED_TO_OPEN

    @pytest.mark.unit
    def test_callback_registered_while_draining_runs_last(self) -> None:
        """Registration during the release keeps issuance order."""
        gate = ReadinessGate()
        order: list[str] = []

        def first(_: object) -> None:
            order.append("first")
            gate.when_ready(lambda _: order.append("nested"))

        gate.when_ready(first)
        gate.when_ready(lambda _: order.append("second"))

        gate.open()

        assert order == ["first", "second", "nested"]

    @pytest.mark.unit
    def test_raising_callback_does_not_drop_later_ones(self) -> None:
        """A failing callback is logged and the release carries on."""
        gate = ReadinessGate()
        order: list[str] = []

        def broken(_: object) -> None:
            raise RuntimeError("callback blew up")

        gate.when_ready(lambda _: order.append("before"))
        gate.when_ready(broken)
        gate.when_ready(lambda _: order.append("after"))

        gate.open()

        assert order == ["before", "after"]
        assert gate.pending_count == 0

    @pytest.mark.unit
    def test_runs_immediately_after_raising_callback(self) -> None:
        """The gate leaves its draining phase even when a callback raised."""
        gate = ReadinessGate()

        def broken(_: object) -> None:
            raise RuntimeError("callback blew up")

        gate.when_ready(broken)
        gate.open()
        calls: list[object] = []

        gate.when_ready(calls.append)

        assert calls == [None]
        assert gate.pending_count == 0

    @pytest.mark.unit
    def test_settles_only_once(self) -> None:
        """A settled gate cannot be settled again."""
        gate = ReadinessGate()
        gate.open()

        with pytest.raises(StoreStateError):
            gate.fail(StoreOpenError("/tmp/db.sql", "late"))
        assert gate.state == StoreState.READY
