"""HTML parsing for the svg-to-png conversion service.

The service answers the first request with a page holding an upload
form (action URL plus a hidden token) and the form submission with a
page showing the converted image.
"""

import re
from dataclasses import dataclass
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag


CONVERSION_PATH = "/svg-to-png"
CONVERT_BUTTON_VALUE = "Convert SVG to PNG!"

# Characters that never appear unescaped in a valid URL
_ILLEGAL_URL_CHARS = re.compile(r"[\s<>\"{}|\\^`]")


@dataclass(frozen=True)
class ConversionForm:
    """Upload form extracted from the conversion page.

    Attributes:
        action_url: Absolute URL the token is posted to.
        token: Value of the hidden token field.
    """

    action_url: str
    token: str

    @property
    def file_name(self) -> str:
        """Get the last path segment of the action URL."""
        return urlsplit(self.action_url).path.rsplit("/", 1)[-1]

    def form_fields(self) -> dict[str, str]:
        """Get the fields submitted to ``action_url``."""
        return {
            "file": self.file_name,
            "token": self.token,
            "convert": CONVERT_BUTTON_VALUE,
        }


def conversion_page_url(base_url: str) -> str:
    """Get the conversion page URL for a service base URL."""
    return base_url.rstrip("/") + CONVERSION_PATH


def absolute_url(candidate: str | None, page_url: str) -> str | None:
    """Resolve a URL found in markup against the page it came from.

    Args:
        candidate: Raw attribute value.
        page_url: URL of the page containing the attribute.

    Returns:
        Absolute http(s) URL, or None if the value is missing or malformed.
    """
    if not candidate or _ILLEGAL_URL_CHARS.search(candidate):
        return None
    resolved = urljoin(page_url, candidate.strip())
    parts = urlsplit(resolved)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        return None
    return resolved


def _attr(element: Tag | None, name: str) -> str | None:
    if element is None:
        return None
    value = element.get(name)
    if isinstance(value, list):
        return " ".join(value)
    return value


def parse_conversion_form(html: str, page_url: str) -> ConversionForm | None:
    """Extract the upload form from the conversion page.

    Args:
        html: Conversion page markup.
        page_url: URL the page was fetched from.

    Returns:
        ConversionForm, or None if the action URL or token is missing
        or malformed.
    """
    soup = BeautifulSoup(html, "lxml")
    form = soup.select_one("form.ajax-form[action]") or soup.select_one("form[action]")
    action_url = absolute_url(_attr(form, "action"), page_url)

    # The token input may sit outside the form element in some page variants
    token_input = None
    if form is not None:
        token_input = form.select_one('input[name="token"]')
    if token_input is None:
        token_input = soup.select_one('input[name="token"]')
    token = _attr(token_input, "value")

    if action_url is None or not token:
        return None
    return ConversionForm(action_url=action_url, token=token)


def parse_converted_image_url(html: str, page_url: str) -> str | None:
    """Extract the download URL of the converted image.

    Args:
        html: Markup returned by the form submission.
        page_url: URL the markup was fetched from.

    Returns:
        Absolute download URL, or None if no usable image link is found.
    """
    soup = BeautifulSoup(html, "lxml")
    image = soup.select_one("#output img[src]")
    if image is None:
        image = next(
            (
                img
                for img in soup.select("img[src]")
                if str(img.get("src", "")).lower().endswith(".png")
            ),
            None,
        )
    return absolute_url(_attr(image, "src"), page_url)
