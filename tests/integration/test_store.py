"""Integration tests for the SQLite persistent store."""

import shutil
import sqlite3
from collections.abc import Callable, Generator
from pathlib import Path

import pytest

from countries.dispatch import ImmediateDispatcher, SerialDispatcher
from countries.store.errors import (
    StoreOpenError,
    StoreOperationError,
    WrongContextError,
)
from countries.store.metrics import StoreMetrics
from countries.store.models import FetchRequest
from countries.store.repository import ALL_COUNTRIES, CountriesDbRepository, Country
from countries.store.state_machine import StoreState
from countries.store.store import SqliteStore
from tests.helpers.dispatch import ManualDispatcher


INSERT_SQL = (
    "INSERT INTO countries (alpha3_code, name, population) VALUES (?, ?, ?)"
)
CODES = FetchRequest(sql="SELECT alpha3_code FROM countries ORDER BY alpha3_code")


def insert(code: str, name: str) -> Callable[[sqlite3.Connection], str]:
    """Build a write operation inserting one country."""

    def operation(conn: sqlite3.Connection) -> str:
        conn.execute(INSERT_SQL, (code, name, 1))
        return code

    return operation


def code_of(row: sqlite3.Row) -> str:
    """Map a row to its country code."""
    return str(row["alpha3_code"])


@pytest.fixture(autouse=True)
def reset_metrics() -> Generator[None]:
    """Start every test with fresh metrics."""
    StoreMetrics.reset()
    yield
    StoreMetrics.reset()


@pytest.fixture
def background() -> ManualDispatcher:
    """Background context released by the test."""
    return ManualDispatcher()


@pytest.fixture
def store(tmp_path: Path, background: ManualDispatcher) -> Generator[SqliteStore]:
    """Create a store whose open has not run yet."""
    instance = SqliteStore(ImmediateDispatcher(), background, directory=tmp_path)
    yield instance
    instance.close()


class TestOpen:
    """Tests for the asynchronous open."""

    @pytest.mark.integration
    def test_initializing_until_background_runs(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """The store opens on the background context."""
        assert store.state == StoreState.INITIALIZING
        assert store.count(CODES) == 0

        background.run_all()

        assert store.state == StoreState.READY
        assert store.db_path.exists()
        assert store.db_path.name == "db.sql"

    @pytest.mark.integration
    def test_operations_wait_for_open_and_run_in_order(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """Operations issued early run after the open, in issuance order."""
        order: list[str] = []

        def record(label: str) -> Callable[[sqlite3.Connection], None]:
            def operation(_: sqlite3.Connection) -> None:
                order.append(label)

            return operation

        first = store.update(record("first"))
        second = store.update(record("second"))
        assert not first.done()
        assert StoreMetrics.get_instance().db_deferred_total == 2

        background.run_all()

        assert order == ["first", "second"]
        assert first.done()
        assert second.done()

    @pytest.mark.integration
    def test_open_failure_fails_every_operation(self, tmp_path: Path) -> None:
        """A failed open is terminal for queued and later operations."""
        blocker = tmp_path / "not-a-directory"
        blocker.write_text("x")
        background = ManualDispatcher()
        store = SqliteStore(ImmediateDispatcher(), background, directory=blocker)
        queued = store.update(insert("FRA", "France"))

        background.run_all()
        later_fetch = store.fetch(CODES, code_of)
        later_update = store.update(insert("DEU", "Germany"))

        assert store.state == StoreState.FAILED_TO_OPEN
        for future in (queued, later_fetch, later_update):
            with pytest.raises(StoreOpenError) as exc_info:
                future.result(timeout=0)
            assert exc_info.value.db_path == str(blocker / "db.sql")
        assert store.count(CODES) == 0
        assert background.pending == 0

    @pytest.mark.integration
    def test_cancelled_operation_does_not_block_later_ones(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """Cancelling a queued operation skips it and releases the rest."""
        early = store.fetch(CODES, code_of)
        later = store.update(insert("FRA", "France"))
        assert early.cancel()

        background.run_all()
        after_open = store.update(insert("DEU", "Germany"))
        background.run_all()

        assert store.state == StoreState.READY
        assert early.cancelled()
        assert later.result(timeout=0) == "FRA"
        assert after_open.result(timeout=0) == "DEU"
        assert list(store.fetch(CODES, code_of).result(timeout=0)) == ["DEU", "FRA"]

    @pytest.mark.integration
    def test_cancelled_update_never_runs(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """A write cancelled before the open leaves the table untouched."""
        cancelled = store.update(insert("FRA", "France"))
        assert cancelled.cancel()

        background.run_all()

        assert cancelled.cancelled()
        assert store.count(CODES) == 0


class TestReadsAndWrites:
    """Tests for fetch, count and update on an open store."""

    @pytest.mark.integration
    def test_update_then_fetch(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """Committed writes are visible to reads."""
        background.run_all()

        written = store.update(insert("FRA", "France"))
        store.update(insert("DEU", "Germany"))
        background.run_all()
        rows = store.fetch(CODES, code_of).result(timeout=0)

        assert written.result(timeout=0) == "FRA"
        assert rows.to_list() == ["DEU", "FRA"]
        assert store.count(CODES) == 2
        assert StoreMetrics.get_instance().db_commits_total == 2
        assert StoreMetrics.get_instance().to_dict()["db_tx_count"] == 2

    @pytest.mark.integration
    def test_write_connection_is_discarded(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """Each update gets its own connection, closed afterwards."""
        seen: list[sqlite3.Connection] = []
        background.run_all()

        for _ in range(2):
            store.update(seen.append)
        background.run_all()

        assert len(seen) == 2
        assert seen[0] is not seen[1]
        with pytest.raises(sqlite3.ProgrammingError):
            seen[0].execute("SELECT 1")

    @pytest.mark.integration
    def test_read_only_update_commits_nothing(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """Operations without changes do not commit."""
        background.run_all()

        future = store.update(
            lambda conn: conn.execute("SELECT COUNT(*) FROM countries").fetchone()[0]
        )
        background.run_all()

        assert future.result(timeout=0) == 0
        assert StoreMetrics.get_instance().db_commits_total == 0

    @pytest.mark.integration
    def test_failed_update_is_rolled_back(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """A raising operation commits nothing and fails its future."""
        background.run_all()

        def insert_then_fail(conn: sqlite3.Connection) -> None:
            conn.execute(INSERT_SQL, ("FRA", "France", 1))
            msg = "validation failed"
            raise ValueError(msg)

        future = store.update(insert_then_fail)
        background.run_all()

        with pytest.raises(StoreOperationError, match="validation failed"):
            future.result(timeout=0)
        assert store.count(CODES) == 0
        assert StoreMetrics.get_instance().db_rollbacks_total == 1

    @pytest.mark.integration
    def test_write_connection_failure_fails_operation(self, tmp_path: Path) -> None:
        """A write that cannot open its connection fails its own future."""
        directory = tmp_path / "data"
        background = ManualDispatcher()
        store = SqliteStore(ImmediateDispatcher(), background, directory=directory)
        background.run_all()
        store.close()
        shutil.rmtree(directory)

        future = store.update(insert("FRA", "France"))
        background.run_all()

        with pytest.raises(StoreOperationError, match="update"):
            future.result(timeout=0)
        assert StoreMetrics.get_instance().db_rollbacks_total == 1

    @pytest.mark.integration
    def test_invalid_query(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """Broken SQL fails the fetch and counts as zero."""
        background.run_all()
        broken = FetchRequest(sql="SELECT * FROM missing_table")

        with pytest.raises(StoreOperationError):
            store.fetch(broken, code_of).result(timeout=0)
        assert store.count(broken) == 0

    @pytest.mark.integration
    def test_reads_cannot_write(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """The shared read connection is query-only."""
        background.run_all()
        delete = FetchRequest(sql="DELETE FROM countries")

        with pytest.raises(StoreOperationError):
            store.fetch(delete, code_of).result(timeout=0)


class TestThreadedStore:
    """Tests with real main and background threads."""

    @pytest.mark.integration
    def test_fetch_requires_main_context(self, tmp_path: Path) -> None:
        """Fetching from another thread is rejected."""
        main = SerialDispatcher("test-main")
        background = SerialDispatcher("test-coredata")
        store = SqliteStore(main, background, directory=tmp_path)
        try:
            with pytest.raises(WrongContextError):
                store.fetch(CODES, code_of)

            store.update(insert("FRA", "France")).result(timeout=5)
            rows = main.dispatch(store.fetch, CODES, code_of).result(timeout=5)

            assert rows.result(timeout=5).to_list() == ["FRA"]
        finally:
            background.shutdown()
            main.dispatch(store.close)
            main.shutdown()


class TestCountriesDbRepository:
    """Tests for countries persisted through the store."""

    @pytest.mark.integration
    def test_store_and_search(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """Stored countries can be searched by localized name."""
        repository = CountriesDbRepository(store)
        assert not repository.has_loaded_countries()

        written = repository.store(
            [
                Country(
                    alpha3_code="DEU",
                    name="Germany",
                    population=83_000_000,
                    flag="https://flagcdn.com/de.svg",
                    translations={"fr": "Allemagne"},
                ),
                Country(alpha3_code="FRA", name="France", population=67_000_000),
            ]
        )
        background.run_all()

        assert written.result(timeout=0) == 2
        assert repository.has_loaded_countries()
        assert store.count(ALL_COUNTRIES) == 2

        found = repository.countries("allem", "fr").result(timeout=0).to_list()
        assert [c.alpha3_code for c in found] == ["DEU"]
        assert found[0].flag == "https://flagcdn.com/de.svg"
        assert found[0].name_for_locale("fr") == "Allemagne"

    @pytest.mark.integration
    def test_store_replaces_existing_rows(
        self, store: SqliteStore, background: ManualDispatcher
    ) -> None:
        """Storing a country twice updates it in place."""
        repository = CountriesDbRepository(store)
        repository.store([Country(alpha3_code="FRA", name="France", population=1)])
        repository.store([Country(alpha3_code="FRA", name="France", population=2)])
        background.run_all()

        found = repository.countries("", "en").result(timeout=0).to_list()

        assert [c.population for c in found] == [2]
