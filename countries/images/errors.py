"""Error types for image loading.

A cache miss is an expected outcome and has its own exception that
never reaches the UI. Everything else is an ``ImageLoadError`` with a
coarse ``kind`` for display and a precise ``cause`` for diagnostics.
"""

from enum import Enum

from countries.fetch.models import FetchError


class ImageErrorKind(str, Enum):
    """User-facing classification of a failed image load.

    - TRANSPORT: The network layer failed or returned a non-2xx status
    - UNEXPECTED_RESPONSE: A response could not be parsed or decoded
    """

    TRANSPORT = "TRANSPORT"
    UNEXPECTED_RESPONSE = "UNEXPECTED_RESPONSE"


class ImageErrorCause(str, Enum):
    """Precise reason behind an ``ImageLoadError``."""

    NETWORK = "NETWORK"
    HTTP_STATUS = "HTTP_STATUS"
    MALFORMED_CONVERSION_PAGE = "MALFORMED_CONVERSION_PAGE"
    MALFORMED_CONVERSION_RESULT = "MALFORMED_CONVERSION_RESULT"
    UNDECODABLE_IMAGE = "UNDECODABLE_IMAGE"
    UNEXPECTED_FAILURE = "UNEXPECTED_FAILURE"


_TRANSPORT_CAUSES = frozenset({ImageErrorCause.NETWORK, ImageErrorCause.HTTP_STATUS})


class ImageNotFoundError(Exception):
    """Raised when an image is not present in the cache."""

    def __init__(self, key: str) -> None:
        """Initialize the error with the missing key.

        Args:
            key: The cache key that was looked up.
        """
        self.key = key
        super().__init__(f"Image not cached: {key}")


class ImageLoadError(Exception):
    """Raised when an image cannot be loaded from the network.

    Attributes:
        cause: Precise reason for the failure.
        url: Source URL of the image being loaded.
        fetch_error: Underlying fetch error for transport failures.
    """

    def __init__(
        self,
        cause: ImageErrorCause,
        message: str,
        url: str,
        fetch_error: FetchError | None = None,
    ) -> None:
        """Initialize the error.

        Args:
            cause: Precise reason for the failure.
            message: Human-readable description.
            url: Source URL of the image.
            fetch_error: Underlying fetch error, if any.
        """
        self.cause = cause
        self.url = url
        self.fetch_error = fetch_error
        super().__init__(message)

    @property
    def kind(self) -> ImageErrorKind:
        """Get the coarse error kind shown to the user."""
        if self.cause in _TRANSPORT_CAUSES:
            return ImageErrorKind.TRANSPORT
        return ImageErrorKind.UNEXPECTED_RESPONSE

    @classmethod
    def from_fetch_error(cls, error: FetchError, url: str) -> "ImageLoadError":
        """Build a transport error from a failed round trip.

        Args:
            error: The fetch error.
            url: Source URL of the image.

        Returns:
            ImageLoadError with NETWORK or HTTP_STATUS cause.
        """
        if error.is_http_status:
            return cls(ImageErrorCause.HTTP_STATUS, error.message, url, error)
        return cls(ImageErrorCause.NETWORK, error.message, url, error)

    @classmethod
    def unexpected_response(
        cls, cause: ImageErrorCause, url: str, detail: str
    ) -> "ImageLoadError":
        """Build an unexpected-response error.

        Args:
            cause: Which stage produced unusable content.
            url: Source URL of the image.
            detail: What was wrong with the content.

        Returns:
            ImageLoadError of kind UNEXPECTED_RESPONSE.
        """
        return cls(cause, f"Unexpected response: {detail}", url)
