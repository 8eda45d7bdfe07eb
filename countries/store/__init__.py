"""SQLite persistent store with a readiness gate.

This module provides:
- Asynchronous open with operations queued until the store is ready
- Shared query-only read connection pinned to the main context
- Isolated, single-use write transactions on a background context
- Schema versioning and migrations
- Countries persistence on top of the store
"""

from countries.store.errors import (
    MigrationError,
    StateStoreError,
    StoreOpenError,
    StoreOperationError,
    StoreStateError,
    WrongContextError,
)
from countries.store.gate import ReadinessGate
from countries.store.metrics import StoreMetrics
from countries.store.migrations import CURRENT_VERSION, MigrationManager
from countries.store.models import FetchRequest, LazyList
from countries.store.repository import Country, CountriesDbRepository
from countries.store.state_machine import StoreState, StoreStateMachine
from countries.store.store import DBOperation, PersistentStore, SqliteStore
from countries.store.version import StoreVersion, default_data_directory


__all__ = [
    # Errors
    "MigrationError",
    "StateStoreError",
    "StoreOpenError",
    "StoreOperationError",
    "StoreStateError",
    "WrongContextError",
    # Gate and state machine
    "ReadinessGate",
    "StoreState",
    "StoreStateMachine",
    # Store
    "DBOperation",
    "PersistentStore",
    "SqliteStore",
    # Models
    "FetchRequest",
    "LazyList",
    # Versioning
    "CURRENT_VERSION",
    "MigrationManager",
    "StoreVersion",
    "default_data_directory",
    # Metrics
    "StoreMetrics",
    # Countries
    "CountriesDbRepository",
    "Country",
]
