"""In-memory image cache keyed by source URL."""

import threading
from collections import OrderedDict
from typing import Protocol

import structlog
from PIL import Image

from countries.images.errors import ImageNotFoundError
from countries.images.metrics import ImageMetrics


logger = structlog.get_logger()

DEFAULT_MAX_ENTRIES = 200

ImageCacheKey = str


def image_cache_key(url: str) -> ImageCacheKey:
    """Get the cache key for an image URL.

    The key is the absolute URL string itself, so two spellings of the
    same resource are cached separately.
    """
    return url


class ImageCacheRepository(Protocol):
    """Protocol for image cache storage."""

    def cached_image(self, key: ImageCacheKey) -> Image.Image:
        """Look up a cached image.

        Args:
            key: Cache key of the image.

        Returns:
            The cached image.

        Raises:
            ImageNotFoundError: If nothing is cached under ``key``.
        """
        ...

    def cache(self, image: Image.Image, key: ImageCacheKey) -> None:
        """Store an image, replacing any previous entry for ``key``."""
        ...

    def purge_cache(self) -> None:
        """Remove every cached image."""
        ...


class InMemoryImageCache:
    """Thread-safe LRU image cache.

    Shared by every interactor; mutated only through ``cache`` and
    ``purge_cache``. When full, the least recently used entry is dropped.
    """

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        """Initialize the cache.

        Args:
            max_entries: Maximum number of images kept.

        Raises:
            ValueError: If max_entries is not positive.
        """
        if max_entries <= 0:
            msg = f"max_entries must be positive, got {max_entries}"
            raise ValueError(msg)
        self._max_entries = max_entries
        self._entries: OrderedDict[ImageCacheKey, Image.Image] = OrderedDict()
        self._lock = threading.Lock()
        self._metrics = ImageMetrics.get_instance()
        self._log = logger.bind(component="cache")

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    @property
    def max_entries(self) -> int:
        """Get the size bound."""
        return self._max_entries

    def cached_image(self, key: ImageCacheKey) -> Image.Image:
        """Look up a cached image and mark it recently used.

        Raises:
            ImageNotFoundError: If nothing is cached under ``key``.
        """
        with self._lock:
            image = self._entries.get(key)
            if image is not None:
                self._entries.move_to_end(key)

        if image is None:
            self._metrics.record_cache_miss()
            self._log.debug("cache_miss", key=key)
            raise ImageNotFoundError(key)

        self._metrics.record_cache_hit()
        self._log.debug("cache_hit", key=key)
        return image

    def cache(self, image: Image.Image, key: ImageCacheKey) -> None:
        """Store an image under ``key`` (last write wins)."""
        evicted: list[ImageCacheKey] = []
        with self._lock:
            self._entries[key] = image
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                oldest, _ = self._entries.popitem(last=False)
                evicted.append(oldest)

        for oldest in evicted:
            self._metrics.record_eviction()
            self._log.debug("cache_evicted", key=oldest)
        self._log.debug("cache_stored", key=key, size=image.size)

    def purge_cache(self) -> None:
        """Remove every cached image."""
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
        self._metrics.record_purge()
        self._log.info("cache_purged", entries=count)
