"""Metrics collection for the persistent store."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass
class StoreMetrics:
    """Metrics for persistent store operations.

    Attributes:
        db_tx_duration_ms: Cumulative write duration in milliseconds.
        db_tx_count: Number of write operations run.
        db_commits_total: Writes that committed changes.
        db_rollbacks_total: Writes that failed and were rolled back.
        db_reads_total: Fetch and count operations run.
        db_deferred_total: Operations queued behind the readiness gate.
    """

    db_tx_duration_ms: float = 0.0
    db_tx_count: int = 0
    db_commits_total: int = 0
    db_rollbacks_total: int = 0
    db_reads_total: int = 0
    db_deferred_total: int = 0

    _instance: ClassVar["StoreMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "StoreMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_tx_duration(self, duration_ms: float) -> None:
        """Record write duration.

        Args:
            duration_ms: Duration in milliseconds.
        """
        self.db_tx_duration_ms += duration_ms
        self.db_tx_count += 1

    def record_commit(self) -> None:
        """Record a committed write."""
        self.db_commits_total += 1

    def record_rollback(self) -> None:
        """Record a rolled back write."""
        self.db_rollbacks_total += 1

    def record_read(self) -> None:
        """Record a read operation."""
        self.db_reads_total += 1

    def record_deferred(self) -> None:
        """Record an operation queued before the store was ready."""
        self.db_deferred_total += 1

    def to_dict(self) -> dict[str, float | int]:
        """Convert metrics to dictionary."""
        return {
            "db_tx_duration_ms": self.db_tx_duration_ms,
            "db_tx_count": self.db_tx_count,
            "db_commits_total": self.db_commits_total,
            "db_rollbacks_total": self.db_rollbacks_total,
            "db_reads_total": self.db_reads_total,
            "db_deferred_total": self.db_deferred_total,
            "db_avg_tx_duration_ms": round(self.avg_tx_duration_ms, 3),
        }

    @property
    def avg_tx_duration_ms(self) -> float:
        """Calculate average write duration."""
        if self.db_tx_count == 0:
            return 0.0
        return self.db_tx_duration_ms / self.db_tx_count


@dataclass
class TransactionContext:
    """Context for a single write with timing.

    Attributes:
        tx_id: Unique transaction identifier.
        start_time_ns: Start time in nanoseconds.
        operation: The operation being performed.
    """

    tx_id: str
    start_time_ns: int
    operation: str
    committed: bool = field(default=False)
