"""Execution contexts for the main (UI) and background work queues."""

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Protocol, TypeVar

import structlog


logger = structlog.get_logger()

T = TypeVar("T")


class Dispatcher(Protocol):
    """Protocol for an execution context that runs submitted callables."""

    def dispatch(self, fn: Callable[..., T], *args: Any) -> "Future[T]":
        """Schedule ``fn(*args)`` on this context.

        Args:
            fn: Callable to run.
            *args: Positional arguments for the callable.

        Returns:
            Future resolved with the callable's result.
        """
        ...

    def is_current(self) -> bool:
        """Check whether the calling thread belongs to this context."""
        ...


class SerialDispatcher:
    """FIFO execution context backed by a single dedicated thread.

    Work submitted from any thread runs one item at a time, in
    submission order, on the same thread. Used for the main (UI)
    context and for the background store and image queues.
    """

    def __init__(self, name: str) -> None:
        """Initialize the dispatcher.

        Args:
            name: Thread name prefix, also used in log records.
        """
        self._name = name
        self._local = threading.local()
        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=name,
            initializer=self._mark_thread,
        )
        self._log = logger.bind(component="dispatch", queue=name)

    @property
    def name(self) -> str:
        """Get the dispatcher name."""
        return self._name

    def _mark_thread(self) -> None:
        self._local.owned = True

    def dispatch(self, fn: Callable[..., T], *args: Any) -> "Future[T]":
        """Schedule ``fn(*args)`` after all previously dispatched work."""
        return self._executor.submit(self._run, fn, *args)

    def _run(self, fn: Callable[..., T], *args: Any) -> T:
        try:
            return fn(*args)
        except Exception:
            self._log.exception(
                "dispatched_work_failed",
                fn=getattr(fn, "__name__", repr(fn)),
            )
            raise

    def is_current(self) -> bool:
        """Check whether the calling thread is this dispatcher's thread."""
        return bool(getattr(self._local, "owned", False))

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work.

        Args:
            wait: Block until queued work has finished.
        """
        self._executor.shutdown(wait=wait)
        self._log.debug("dispatcher_shutdown")


class ImmediateDispatcher:
    """Execution context that runs work inline on the calling thread.

    Every thread counts as current. Useful for deterministic tests.
    """

    def dispatch(self, fn: Callable[..., T], *args: Any) -> "Future[T]":
        """Run ``fn(*args)`` now and return an already-resolved future."""
        future: Future[T] = Future()
        try:
            future.set_result(fn(*args))
        except Exception as e:  # noqa: BLE001
            future.set_exception(e)
        return future

    def is_current(self) -> bool:
        """Always True."""
        return True

    def shutdown(self, wait: bool = True) -> None:  # noqa: ARG002
        """No-op."""
