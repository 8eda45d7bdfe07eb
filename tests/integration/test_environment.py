"""Integration tests for the assembled application environment."""

from collections.abc import Generator
from pathlib import Path

import pytest
from PIL import Image

from countries.environment import Environment, bootstrap
from countries.fetch.metrics import FetchMetrics
from countries.images.errors import ImageErrorKind, ImageLoadError
from countries.images.interactor import ImageBinding, LoadTask
from countries.images.metrics import ImageMetrics
from countries.loadable.binding import Binding
from countries.loadable.models import Loadable, NotRequested
from countries.loadable.state_machine import LoadableState
from countries.settings.app import AppSettings
from countries.store.metrics import StoreMetrics
from countries.store.repository import Country
from countries.store.state_machine import StoreState
from tests.helpers.images import (
    PNG_IMAGE_URL,
    SVG_IMAGE_URL,
    TEST_BASE_URL,
    RecordingTransport,
    conversion_routes,
    png_bytes,
)


@pytest.fixture(autouse=True)
def reset_metrics() -> Generator[None]:
    """Start every test with fresh metrics."""
    FetchMetrics.reset()
    ImageMetrics.reset()
    StoreMetrics.reset()
    yield
    FetchMetrics.reset()
    ImageMetrics.reset()
    StoreMetrics.reset()


@pytest.fixture
def router() -> RecordingTransport:
    """Serve the conversion service and one raster image."""
    router = conversion_routes(RecordingTransport())
    router.add("GET", PNG_IMAGE_URL, png_bytes(600, 300))
    return router


@pytest.fixture
def env(tmp_path: Path, router: RecordingTransport) -> Generator[Environment]:
    """Bootstrap an environment against the fake network and a temp database."""
    settings = AppSettings(conversion_base_url=TEST_BASE_URL, db_directory=tmp_path)
    environment = bootstrap(settings, transport=router.transport())
    yield environment
    environment.close()


def load(env: Environment, binding: ImageBinding, url: str | None) -> LoadTask:
    """Start a load on the main context and wait for it to settle."""
    task = env.main.dispatch(env.images.load, binding, url).result(timeout=5)
    assert isinstance(task, LoadTask)
    assert task.wait(timeout=5)
    return task


def snapshot(env: Environment, binding: ImageBinding) -> Loadable[Image.Image]:
    """Read the binding on the main context."""
    return env.main.dispatch(lambda: binding.value).result(timeout=5)


class TestImagePipeline:
    """Tests for image loading through the environment."""

    @pytest.mark.integration
    def test_svg_is_converted_then_cached(
        self, env: Environment, router: RecordingTransport
    ) -> None:
        """The first load converts; the second is served from the cache."""
        first: ImageBinding = Binding(NotRequested())
        second: ImageBinding = Binding(NotRequested())

        load(env, first, SVG_IMAGE_URL)
        load(env, second, SVG_IMAGE_URL)

        state = snapshot(env, first)
        assert state.state == LoadableState.LOADED
        assert state.value is not None
        assert state.value.size == (40, 40)
        assert snapshot(env, second).value is state.value
        assert len(router.requests) == 3
        assert ImageMetrics.get_instance().cache_hits_total == 1

    @pytest.mark.integration
    def test_raster_is_downscaled(self, env: Environment) -> None:
        """Raster images are fitted to the configured width."""
        binding: ImageBinding = Binding(NotRequested())

        load(env, binding, PNG_IMAGE_URL)

        state = snapshot(env, binding)
        assert state.value is not None
        assert state.value.size == (300, 150)

    @pytest.mark.integration
    def test_missing_image_fails(self, env: Environment) -> None:
        """Unrouted URLs end in a transport failure."""
        binding: ImageBinding = Binding(NotRequested())

        load(env, binding, "https://image.service.com/missing.png")

        state = snapshot(env, binding)
        assert state.state == LoadableState.FAILED
        assert isinstance(state.error, ImageLoadError)
        assert state.error.kind == ImageErrorKind.TRANSPORT

    @pytest.mark.integration
    def test_memory_warning_forces_reload(
        self, env: Environment, router: RecordingTransport
    ) -> None:
        """After a memory warning the image is fetched again."""
        load(env, Binding(NotRequested()), PNG_IMAGE_URL)

        env.memory_warning.send(None)
        load(env, Binding(NotRequested()), PNG_IMAGE_URL)

        assert router.calls == [("GET", PNG_IMAGE_URL), ("GET", PNG_IMAGE_URL)]


class TestStoreThroughEnvironment:
    """Tests for persistence through the environment."""

    @pytest.mark.integration
    def test_countries_round_trip(self, env: Environment, tmp_path: Path) -> None:
        """Countries written in the background are readable on main."""
        written = env.countries_db.store(
            [Country(alpha3_code="ITA", name="Italy", population=59_000_000)]
        )

        assert written.result(timeout=5) == 1
        assert env.store.state == StoreState.READY
        assert env.store.db_path == tmp_path / "db.sql"
        assert env.countries_db.has_loaded_countries()

        found = env.main.dispatch(env.countries_db.countries, "ital", "en").result(
            timeout=5
        )
        assert [c.name for c in found.result(timeout=5)] == ["Italy"]
