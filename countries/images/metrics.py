"""Metrics collection for image loading."""

from dataclasses import dataclass, field
from typing import ClassVar

from countries.images.errors import ImageErrorCause


@dataclass
class ImageMetrics:
    """Metrics for image cache and load operations.

    Attributes:
        cache_hits_total: Lookups answered by the in-memory cache.
        cache_misses_total: Lookups that fell back to the network.
        cache_purges_total: Full cache purges.
        cache_evictions_total: Entries dropped to respect the size bound.
        loads_succeeded_total: Loads that ended in a loaded state.
        loads_failed_total: Failed loads per cause.
        loads_cancelled_total: Loads whose state write was suppressed.
    """

    cache_hits_total: int = 0
    cache_misses_total: int = 0
    cache_purges_total: int = 0
    cache_evictions_total: int = 0
    loads_succeeded_total: int = 0
    loads_failed_total: dict[str, int] = field(default_factory=dict)
    loads_cancelled_total: int = 0

    _instance: ClassVar["ImageMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "ImageMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_cache_hit(self) -> None:
        """Record a cache hit."""
        self.cache_hits_total += 1

    def record_cache_miss(self) -> None:
        """Record a cache miss."""
        self.cache_misses_total += 1

    def record_purge(self) -> None:
        """Record a full cache purge."""
        self.cache_purges_total += 1

    def record_eviction(self) -> None:
        """Record a bounded-size eviction."""
        self.cache_evictions_total += 1

    def record_load_success(self) -> None:
        """Record a successful load."""
        self.loads_succeeded_total += 1

    def record_load_failure(self, cause: ImageErrorCause) -> None:
        """Record a failed load.

        Args:
            cause: Reason for the failure.
        """
        key = cause.value
        self.loads_failed_total[key] = self.loads_failed_total.get(key, 0) + 1

    def record_load_cancelled(self) -> None:
        """Record a load whose result was discarded."""
        self.loads_cancelled_total += 1

    def to_dict(self) -> dict[str, int | dict[str, int]]:
        """Convert metrics to dictionary."""
        return {
            "cache_hits_total": self.cache_hits_total,
            "cache_misses_total": self.cache_misses_total,
            "cache_purges_total": self.cache_purges_total,
            "cache_evictions_total": self.cache_evictions_total,
            "loads_succeeded_total": self.loads_succeeded_total,
            "loads_failed_total": dict(self.loads_failed_total),
            "loads_cancelled_total": self.loads_cancelled_total,
        }
