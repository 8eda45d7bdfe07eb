"""Unit tests for the Loadable state container."""

import pytest

from countries.images.errors import ImageErrorCause, ImageLoadError
from countries.loadable.models import Failed, IsLoading, Loaded, NotRequested
from countries.loadable.state_machine import LoadableState, can_transition


class TestLoadableVariants:
    """Tests for value, error and state inspection."""

    @pytest.mark.unit
    def test_not_requested_has_no_value(self) -> None:
        """NotRequested exposes neither value nor error."""
        state = NotRequested()
        assert state.value is None
        assert state.error is None
        assert state.state == LoadableState.NOT_REQUESTED

    @pytest.mark.unit
    def test_is_loading_exposes_last_value(self) -> None:
        """A refresh keeps the previous value visible."""
        state = IsLoading(last="flag")
        assert state.value == "flag"
        assert state.state == LoadableState.IS_LOADING
        assert IsLoading().value is None

    @pytest.mark.unit
    def test_loaded_exposes_value(self) -> None:
        """Loaded carries its value."""
        state = Loaded(42)
        assert state.value == 42
        assert state.error is None

    @pytest.mark.unit
    def test_failed_exposes_error(self) -> None:
        """Failed carries its error and no value."""
        error = ValueError("boom")
        state = Failed(error)
        assert state.error is error
        assert state.value is None
        assert state.state == LoadableState.FAILED


class TestLoadableEquality:
    """Tests for structural equality."""

    @pytest.mark.unit
    def test_same_variant_same_payload_is_equal(self) -> None:
        """Variants compare by payload."""
        assert NotRequested() == NotRequested()
        assert IsLoading(last=1) == IsLoading(last=1)
        assert Loaded("a") == Loaded("a")
        assert Loaded("a") != Loaded("b")
        assert IsLoading(last=None) != IsLoading(last=1)

    @pytest.mark.unit
    def test_different_variants_are_not_equal(self) -> None:
        """Variants never equal each other."""
        assert NotRequested() != IsLoading()
        assert Loaded(None) != IsLoading(last=None)

    @pytest.mark.unit
    def test_failed_compares_error_type_and_message(self) -> None:
        """Distinct error instances with the same message compare equal."""
        first = ImageLoadError(ImageErrorCause.NETWORK, "offline", "https://a/b.png")
        second = ImageLoadError(ImageErrorCause.NETWORK, "offline", "https://a/b.png")
        assert Failed(first) == Failed(second)
        assert Failed(first) != Failed(ValueError("offline"))
        assert Failed(first) != Failed(
            ImageLoadError(ImageErrorCause.NETWORK, "timeout", "https://a/b.png")
        )


class TestLoadableTransitions:
    """Tests for the lifecycle transition table."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("from_state", "to_state"),
        [
            (LoadableState.NOT_REQUESTED, LoadableState.IS_LOADING),
            (LoadableState.IS_LOADING, LoadableState.LOADED),
            (LoadableState.IS_LOADING, LoadableState.FAILED),
            (LoadableState.LOADED, LoadableState.IS_LOADING),
            (LoadableState.FAILED, LoadableState.IS_LOADING),
            (LoadableState.LOADED, LoadableState.NOT_REQUESTED),
        ],
    )
    def test_valid_transitions(
        self, from_state: LoadableState, to_state: LoadableState
    ) -> None:
        """Lifecycle and refresh transitions are allowed."""
        assert can_transition(from_state, to_state)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        ("from_state", "to_state"),
        [
            (LoadableState.NOT_REQUESTED, LoadableState.LOADED),
            (LoadableState.NOT_REQUESTED, LoadableState.FAILED),
            (LoadableState.LOADED, LoadableState.FAILED),
            (LoadableState.FAILED, LoadableState.LOADED),
        ],
    )
    def test_skipping_loading_is_invalid(
        self, from_state: LoadableState, to_state: LoadableState
    ) -> None:
        """A result cannot appear without a preceding load."""
        assert not can_transition(from_state, to_state)
