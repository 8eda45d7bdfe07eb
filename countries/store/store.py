"""SQLite persistent store gated on an asynchronous open."""

import sqlite3
import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import Future
from pathlib import Path
from typing import Protocol, TypeVar

import structlog

from countries.dispatch import Dispatcher
from countries.store.errors import (
    MigrationError,
    StoreOpenError,
    StoreOperationError,
    WrongContextError,
)
from countries.store.gate import GateCallback, ReadinessGate
from countries.store.metrics import StoreMetrics, TransactionContext
from countries.store.migrations import MigrationManager
from countries.store.models import FetchRequest, LazyList
from countries.store.state_machine import StoreState
from countries.store.version import CURRENT_STORE_VERSION, StoreVersion


logger = structlog.get_logger()

R = TypeVar("R")
V = TypeVar("V")

DBOperation = Callable[[sqlite3.Connection], R]


class PersistentStore(Protocol):
    """Protocol for the application's local datastore."""

    def count(self, request: FetchRequest) -> int:
        """Count rows matched by ``request``; 0 on any failure."""
        ...

    def fetch(
        self,
        request: FetchRequest,
        map_row: Callable[[sqlite3.Row], V | None],
    ) -> "Future[LazyList[sqlite3.Row, V]]":
        """Run ``request`` and map rows lazily."""
        ...

    def update(self, operation: DBOperation[R]) -> "Future[R]":
        """Run ``operation`` in an isolated write transaction."""
        ...


class SqliteStore:
    """SQLite store that opens in the background and gates every operation.

    Reads share one query-only connection and run on the main context.
    Each write gets a fresh connection on the background context that is
    committed when it holds changes and always rolled back and closed
    afterwards. Operations issued before the open completes are queued
    and released in issuance order; if the open fails they all fail
    with ``StoreOpenError``.
    """

    def __init__(
        self,
        main: Dispatcher,
        background: Dispatcher,
        directory: Path | None = None,
        version: int = CURRENT_STORE_VERSION,
    ) -> None:
        """Initialize the store and start opening it.

        Args:
            main: Context that owns reads and receives results.
            background: Context for opening and writes.
            directory: Directory holding the database file.
            version: Store version number.
        """
        self._main = main
        self._background = background
        self._version = StoreVersion(version)
        self._db_path = self._version.db_file_path(directory)
        self._gate = ReadinessGate()
        self._read_conn: sqlite3.Connection | None = None
        self._read_lock = threading.Lock()
        self._metrics = StoreMetrics.get_instance()
        self._log = logger.bind(
            component="store",
            db_path=str(self._db_path),
            model=self._version.model_name,
        )
        self._background.dispatch(self._open)

    @property
    def db_path(self) -> Path:
        """Get the database path."""
        return self._db_path

    @property
    def version(self) -> StoreVersion:
        """Get the store version."""
        return self._version

    @property
    def state(self) -> StoreState:
        """Get the readiness state."""
        return self._gate.state

    # ===== Lifecycle =====

    def _open(self) -> None:
        """Create the database and apply migrations (background context)."""
        start_ns = time.perf_counter_ns()
        self._log.info("store_opening")
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(str(self._db_path))
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                MigrationManager(conn).apply_migrations()
            finally:
                conn.close()
        except (OSError, sqlite3.Error, MigrationError) as e:
            error = StoreOpenError(str(self._db_path), str(e))
            error.__cause__ = e
            self._main.dispatch(self._finish_open, error)
            return

        duration_ms = (time.perf_counter_ns() - start_ns) / 1_000_000
        self._log.debug("store_file_ready", duration_ms=round(duration_ms, 2))
        self._main.dispatch(self._finish_open, None)

    def _finish_open(self, error: StoreOpenError | None) -> None:
        """Open the shared read connection and settle the gate (main context)."""
        if error is None:
            try:
                self._read_conn = self._connect_reader()
            except sqlite3.Error as e:
                error = StoreOpenError(str(self._db_path), str(e))
                error.__cause__ = e

        if error is not None:
            self._log.error("store_open_failed", error=str(error))
            self._gate.fail(error)
            return

        self._log.info("store_ready")
        self._gate.open()

    def _connect_reader(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            str(self._db_path), check_same_thread=False, isolation_level=None
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA query_only=ON")
        return conn

    def close(self) -> None:
        """Close the shared read connection."""
        with self._read_lock:
            if self._read_conn is not None:
                self._read_conn.close()
                self._read_conn = None
                self._log.info("store_closed")

    def _when_ready(self, operation: str, callback: GateCallback) -> None:
        if self._gate.state == StoreState.INITIALIZING:
            self._metrics.record_deferred()
            self._log.debug("operation_deferred", op=operation)
        self._gate.when_ready(callback)

    # ===== Reads =====

    def count(self, request: FetchRequest) -> int:
        """Count the rows matched by ``request``.

        Returns 0 when the store is not ready or the query fails.

        Args:
            request: SELECT to count.

        Returns:
            Number of matching rows.
        """
        with self._read_lock:
            conn = self._read_conn
            if conn is None:
                self._log.debug("count_unavailable", state=self._gate.state.name)
                return 0
            try:
                row = conn.execute(request.count_sql(), request.params).fetchone()
            except sqlite3.Error as e:
                self._log.warning("count_failed", error=str(e))
                return 0
        self._metrics.record_read()
        return int(row[0])

    def fetch(
        self,
        request: FetchRequest,
        map_row: Callable[[sqlite3.Row], V | None],
    ) -> "Future[LazyList[sqlite3.Row, V]]":
        """Run ``request`` on the shared read connection.

        Args:
            request: SELECT to run.
            map_row: Applied lazily per row; None skips the row.

        Returns:
            Future resolved on the main context with the mapped rows, or
            with ``StoreOpenError`` / ``StoreOperationError``.

        Raises:
            WrongContextError: If not called on the main context.
        """
        if not self._main.is_current():
            msg = "fetch must be called on the main context"
            raise WrongContextError(msg)

        future: Future[LazyList[sqlite3.Row, V]] = Future()

        def run(error: BaseException | None) -> None:
            if not future.set_running_or_notify_cancel():
                self._log.debug("operation_cancelled", op="fetch")
                return
            if error is not None:
                future.set_exception(error)
                return
            try:
                future.set_result(self._run_fetch(request, map_row))
            except StoreOperationError as e:
                future.set_exception(e)

        self._when_ready("fetch", run)
        return future

    def _run_fetch(
        self,
        request: FetchRequest,
        map_row: Callable[[sqlite3.Row], V | None],
    ) -> LazyList[sqlite3.Row, V]:
        with self._read_lock:
            conn = self._read_conn
            if conn is None:
                raise StoreOperationError("fetch", "store is closed")
            try:
                rows = conn.execute(request.sql, request.params).fetchall()
            except sqlite3.Error as e:
                self._log.warning("fetch_failed", error=str(e))
                raise StoreOperationError("fetch", str(e)) from e
        self._metrics.record_read()
        return LazyList(rows, map_row, use_cache=True)

    # ===== Writes =====

    def update(self, operation: DBOperation[R]) -> "Future[R]":
        """Run ``operation`` in a fresh write transaction.

        Args:
            operation: Receives a write connection used only for this call.

        Returns:
            Future resolved on the main context with the operation's
            result, or with ``StoreOpenError`` / ``StoreOperationError``.
        """
        future: Future[R] = Future()

        def run(error: BaseException | None) -> None:
            # A running future can no longer be cancelled by the caller
            if not future.set_running_or_notify_cancel():
                self._log.debug("operation_cancelled", op="update")
                return
            if error is not None:
                self._main.dispatch(future.set_exception, error)
                return
            self._background.dispatch(self._run_update, operation, future)

        self._when_ready("update", run)
        return future

    def _run_update(self, operation: DBOperation[R], future: "Future[R]") -> None:
        """Execute a write and hand its outcome to the main context."""
        try:
            result = self._execute_write(operation)
        except StoreOperationError as e:
            self._main.dispatch(future.set_exception, e)
        else:
            self._main.dispatch(future.set_result, result)

    def _execute_write(self, operation: DBOperation[R]) -> R:
        """Run ``operation`` on a fresh connection, then discard it.

        Raises:
            StoreOperationError: If the operation or the commit fails.
        """
        ctx = TransactionContext(
            tx_id=str(uuid.uuid4())[:8],
            start_time_ns=time.perf_counter_ns(),
            operation="update",
        )
        log = self._log.bind(tx_id=ctx.tx_id, op=ctx.operation)
        log.debug("transaction_started")

        conn: sqlite3.Connection | None = None
        try:
            conn = sqlite3.connect(str(self._db_path))
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys=ON")
            result = operation(conn)
            if conn.in_transaction:
                conn.commit()
                ctx.committed = True
        except Exception as e:
            self._metrics.record_rollback()
            log.error("transaction_failed", error=str(e))
            raise StoreOperationError("update", str(e)) from e
        finally:
            # Uncommitted state never outlives the call
            if conn is not None:
                if conn.in_transaction:
                    conn.rollback()
                conn.close()
            duration_ms = (time.perf_counter_ns() - ctx.start_time_ns) / 1_000_000
            self._metrics.record_tx_duration(duration_ms)

        if ctx.committed:
            self._metrics.record_commit()
        log.info(
            "transaction_complete",
            committed=ctx.committed,
            duration_ms=round(duration_ms, 2),
        )
        return result
