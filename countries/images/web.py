"""Image web repository: direct raster fetch or svg-to-png conversion."""

from io import BytesIO
from typing import Protocol
from urllib.parse import urlsplit

import structlog
from PIL import Image, UnidentifiedImageError

from countries.fetch.client import HttpFetcher
from countries.fetch.models import FetchResult
from countries.fetch.redact import redact_url_credentials
from countries.images.conversion import (
    conversion_page_url,
    parse_conversion_form,
    parse_converted_image_url,
)
from countries.images.errors import ImageErrorCause, ImageLoadError


logger = structlog.get_logger()

DEFAULT_CONVERSION_BASE_URL = "https://ezgif.com"

# Extensions Pillow decodes without conversion
RASTER_EXTENSIONS = frozenset(
    {"png", "jpg", "jpeg", "gif", "bmp", "webp", "tif", "tiff", "ico"}
)


def url_extension(url: str) -> str:
    """Get the lower-cased file extension of a URL path, or ''."""
    last_segment = urlsplit(url).path.rsplit("/", 1)[-1]
    if "." not in last_segment:
        return ""
    return last_segment.rsplit(".", 1)[-1].lower()


def needs_conversion(url: str) -> bool:
    """Check whether an image URL must go through the conversion service."""
    return url_extension(url) not in RASTER_EXTENSIONS


def decode_image(data: bytes) -> Image.Image | None:
    """Decode raster image bytes.

    Args:
        data: Encoded image.

    Returns:
        Fully loaded image, or None if the bytes are not a decodable image.
    """
    try:
        image = Image.open(BytesIO(data))
        image.load()
    except (
        UnidentifiedImageError,
        OSError,
        ValueError,
        SyntaxError,
        Image.DecompressionBombError,
    ):
        # Pillow reports broken PNG chunks as SyntaxError
        return None
    return image


def fit_width(image: Image.Image, width: int | None) -> Image.Image:
    """Downscale an image to ``width`` keeping its aspect ratio.

    Images already at most ``width`` pixels wide are returned unchanged.
    """
    if width is None or image.width <= width:
        return image
    height = max(1, round(image.height * width / image.width))
    return image.resize((width, height), Image.Resampling.LANCZOS)


class ImageWebRepository(Protocol):
    """Protocol for loading images over the network."""

    def load(self, url: str, width: int | None) -> Image.Image:
        """Load and decode an image.

        Args:
            url: Absolute image URL.
            width: Optional maximum width of the result.

        Returns:
            Decoded image.

        Raises:
            ImageLoadError: If any round trip fails or yields unusable content.
        """
        ...


class HttpImageWebRepository:
    """Loads images over HTTP, converting vector sources through a web service.

    Raster URLs take one GET. Other URLs take three round trips, in order:
    1. GET the conversion page for the source URL
    2. POST the page's token to its form action
    3. GET the converted PNG
    A stage that fails stops the pipeline.
    """

    def __init__(
        self,
        fetcher: HttpFetcher,
        base_url: str = DEFAULT_CONVERSION_BASE_URL,
    ) -> None:
        """Initialize the repository.

        Args:
            fetcher: HTTP client used for every round trip.
            base_url: Base URL of the conversion service.
        """
        self._fetcher = fetcher
        self._base_url = base_url
        self._log = logger.bind(component="images")

    @property
    def base_url(self) -> str:
        """Get the conversion service base URL."""
        return self._base_url

    def load(self, url: str, width: int | None) -> Image.Image:
        """Load an image, converting it first when it is not a raster format.

        Args:
            url: Absolute image URL.
            width: Optional maximum width of the result.

        Returns:
            Decoded, possibly downscaled image.

        Raises:
            ImageLoadError: If any round trip fails or yields unusable content.
        """
        log = self._log.bind(url=redact_url_credentials(url), width=width)
        if needs_conversion(url):
            log.debug("image_conversion_started")
            download_url = self._convert(url)
        else:
            download_url = url

        image = self._download(url, download_url)
        result = fit_width(image, width)
        log.info(
            "image_loaded",
            converted=download_url != url,
            source_size=image.size,
            size=result.size,
        )
        return result

    def _convert(self, url: str) -> str:
        """Run the conversion round trips and return the PNG download URL."""
        page_url = conversion_page_url(self._base_url)
        page = self._checked(self._fetcher.get(page_url, params={"url": url}), url)

        form = parse_conversion_form(page.text, page.final_url)
        if form is None:
            raise ImageLoadError.unexpected_response(
                ImageErrorCause.MALFORMED_CONVERSION_PAGE,
                url,
                "conversion page has no usable form action or token",
            )

        converted = self._checked(
            self._fetcher.post(
                form.action_url, data=form.form_fields(), params={"ajax": "true"}
            ),
            url,
        )
        download_url = parse_converted_image_url(converted.text, form.action_url)
        if download_url is None:
            raise ImageLoadError.unexpected_response(
                ImageErrorCause.MALFORMED_CONVERSION_RESULT,
                url,
                "conversion result has no usable image link",
            )
        return download_url

    def _download(self, url: str, download_url: str) -> Image.Image:
        result = self._checked(self._fetcher.get(download_url), url)
        image = decode_image(result.body_bytes)
        if image is None:
            raise ImageLoadError.unexpected_response(
                ImageErrorCause.UNDECODABLE_IMAGE,
                url,
                f"{result.body_size} bytes are not a decodable image",
            )
        return image

    def _checked(self, result: FetchResult, url: str) -> FetchResult:
        if result.error is not None:
            raise ImageLoadError.from_fetch_error(result.error, url)
        return result
