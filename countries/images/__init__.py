"""Image loading: in-memory cache, web repository and interactor."""

from countries.images.cache import (
    ImageCacheKey,
    ImageCacheRepository,
    InMemoryImageCache,
    image_cache_key,
)
from countries.images.conversion import ConversionForm
from countries.images.errors import (
    ImageErrorCause,
    ImageErrorKind,
    ImageLoadError,
    ImageNotFoundError,
)
from countries.images.interactor import (
    ImageBinding,
    ImagesInteractor,
    LoadTask,
    RealImagesInteractor,
    StubImagesInteractor,
)
from countries.images.metrics import ImageMetrics
from countries.images.web import HttpImageWebRepository, ImageWebRepository


__all__ = [
    # Cache
    "ImageCacheKey",
    "ImageCacheRepository",
    "InMemoryImageCache",
    "image_cache_key",
    # Web
    "ConversionForm",
    "HttpImageWebRepository",
    "ImageWebRepository",
    # Interactor
    "ImageBinding",
    "ImagesInteractor",
    "LoadTask",
    "RealImagesInteractor",
    "StubImagesInteractor",
    # Errors
    "ImageErrorCause",
    "ImageErrorKind",
    "ImageLoadError",
    "ImageNotFoundError",
    # Metrics
    "ImageMetrics",
]
