"""Images interactor: cache-then-network loading into an observable slot."""

import threading
from typing import Protocol

import structlog
from PIL import Image

from countries.dispatch import Dispatcher
from countries.fetch.redact import redact_url_credentials
from countries.images.cache import ImageCacheRepository, image_cache_key
from countries.images.errors import (
    ImageErrorCause,
    ImageLoadError,
    ImageNotFoundError,
)
from countries.images.metrics import ImageMetrics
from countries.images.web import ImageWebRepository
from countries.loadable.binding import Binding, Cancellable, Subject
from countries.loadable.models import (
    Failed,
    IsLoading,
    Loadable,
    Loaded,
    NotRequested,
)
from countries.loadable.state_machine import can_transition


logger = structlog.get_logger()

DEFAULT_TARGET_WIDTH = 300

ImageBinding = Binding[Loadable[Image.Image]]


class LoadTask(Cancellable):
    """Handle for one in-flight image load.

    Cancelling suppresses the final state write; requests already sent
    are not aborted.
    """

    def __init__(self) -> None:
        self._settled = threading.Event()
        super().__init__(self._settled.set)

    @property
    def is_settled(self) -> bool:
        """Check whether the load finished or was cancelled."""
        return self._settled.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the load finished or was cancelled.

        Args:
            timeout: Maximum seconds to wait.

        Returns:
            True if settled within the timeout.
        """
        return self._settled.wait(timeout)

    def finish(self) -> None:
        """Mark the load as finished."""
        self._settled.set()


class ImagesInteractor(Protocol):
    """Protocol for loading images into a UI binding."""

    def load(self, image: ImageBinding, url: str | None) -> Cancellable:
        """Start loading ``url`` into ``image``.

        Args:
            image: Binding the loading state is written to.
            url: Absolute image URL, or None when there is nothing to load.

        Returns:
            Handle that suppresses the pending state write when cancelled.
        """
        ...


class RealImagesInteractor:
    """Resolves images from the in-memory cache, falling back to the network.

    State writes other than the initial loading transition happen on the
    ``main`` dispatcher; lookups and network work run on ``worker``.
    Memory pressure emissions purge the cache until ``close`` is called.
    """

    def __init__(  # noqa: PLR0913
        self,
        web_repository: ImageWebRepository,
        in_memory_cache: ImageCacheRepository,
        memory_warning: Subject[None],
        main: Dispatcher,
        worker: Dispatcher,
        target_width: int | None = DEFAULT_TARGET_WIDTH,
    ) -> None:
        """Initialize the interactor.

        Args:
            web_repository: Network image source.
            in_memory_cache: Shared image cache.
            memory_warning: Host memory-pressure signal.
            main: Context that owns the UI bindings.
            worker: Context for cache lookups and network loads.
            target_width: Maximum width of loaded images.
        """
        self._web_repository = web_repository
        self._cache = in_memory_cache
        self._main = main
        self._worker = worker
        self._target_width = target_width
        self._metrics = ImageMetrics.get_instance()
        self._log = logger.bind(component="interactor")
        self._memory_warning_subscription = memory_warning.subscribe(
            self._on_memory_warning
        )

    def _on_memory_warning(self, _: None) -> None:
        self._log.info("memory_warning_received")
        self._cache.purge_cache()

    def close(self) -> None:
        """Stop reacting to memory-pressure emissions."""
        self._memory_warning_subscription.cancel()

    def __enter__(self) -> "RealImagesInteractor":
        """Context manager entry."""
        return self

    def __exit__(
        self,
        exc_type: type | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()

    def load(self, image: ImageBinding, url: str | None) -> Cancellable:
        """Start loading ``url`` into ``image``.

        Must be called on the context that owns ``image``.

        Args:
            image: Binding the loading state is written to.
            url: Absolute image URL, or None when there is nothing to load.

        Returns:
            LoadTask for the load, or an already-cancelled handle for None.
        """
        if url is None:
            self._write(image, NotRequested())
            return Cancellable.cancelled()

        self._write(image, IsLoading(last=image.value.value))
        task = LoadTask()
        self._worker.dispatch(self._resolve, image, url, task)
        return task

    def _resolve(self, image: ImageBinding, url: str, task: LoadTask) -> None:
        key = image_cache_key(url)
        log = self._log.bind(url=redact_url_credentials(url))
        state: Loadable[Image.Image]

        try:
            state = Loaded(self._cache.cached_image(key))
            log.debug("image_resolved_from_cache")
        except ImageNotFoundError:
            try:
                loaded = self._web_repository.load(url, self._target_width)
            except ImageLoadError as e:
                log.warning(
                    "image_load_failed",
                    kind=e.kind.value,
                    cause=e.cause.value,
                    error=str(e),
                )
                self._metrics.record_load_failure(e.cause)
                state = Failed(e)
            except Exception as e:
                # Any worker failure still settles the binding
                log.exception("image_load_crashed")
                error = ImageLoadError.unexpected_response(
                    ImageErrorCause.UNEXPECTED_FAILURE, url, str(e)
                )
                self._metrics.record_load_failure(error.cause)
                state = Failed(error)
            else:
                self._cache.cache(loaded, key)
                state = Loaded(loaded)

        if isinstance(state, Loaded):
            self._metrics.record_load_success()
        self._main.dispatch(self._publish, image, state, task)

    def _publish(
        self, image: ImageBinding, state: Loadable[Image.Image], task: LoadTask
    ) -> None:
        if task.is_cancelled:
            self._metrics.record_load_cancelled()
            self._log.debug("image_state_write_suppressed")
            return
        self._write(image, state)
        task.finish()

    def _write(self, image: ImageBinding, state: Loadable[Image.Image]) -> None:
        current = image.value
        if not can_transition(current.state, state.state):
            self._log.error(
                "invariant_violation",
                error_type="illegal_loadable_transition",
                from_state=current.state.name,
                to_state=state.state.name,
            )
        image.value = state


class StubImagesInteractor:
    """Interactor that never loads anything."""

    def load(self, image: ImageBinding, url: str | None) -> Cancellable:  # noqa: ARG002
        """Return an already-cancelled handle without touching ``image``."""
        return Cancellable.cancelled()
