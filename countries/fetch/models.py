"""Data models for the HTTP fetch layer."""

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from countries.fetch.constants import HTTP_STATUS_OK_MAX, HTTP_STATUS_OK_MIN


class FetchErrorClass(str, Enum):
    """Classification of fetch errors.

    - NETWORK_TIMEOUT: Request timed out
    - CONNECTION_ERROR: Could not establish connection
    - RESPONSE_SIZE_EXCEEDED: Response exceeded max size limit
    - HTTP_4XX: 4xx client error
    - HTTP_5XX: 5xx server error
    - HTTP_OTHER: Any other non-2xx status (unfollowed 3xx, 1xx, 600+)
    - INVALID_URL: The URL could not be turned into a request
    - UNKNOWN: Unclassified error
    """

    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    RESPONSE_SIZE_EXCEEDED = "RESPONSE_SIZE_EXCEEDED"
    HTTP_4XX = "HTTP_4XX"
    HTTP_5XX = "HTTP_5XX"
    HTTP_OTHER = "HTTP_OTHER"
    INVALID_URL = "INVALID_URL"
    UNKNOWN = "UNKNOWN"


class FetchError(BaseModel):
    """Typed error from a fetch operation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    error_class: FetchErrorClass = Field(description="Classification of the error")
    message: Annotated[str, Field(min_length=1, description="Human-readable message")]
    status_code: int | None = Field(
        default=None, description="HTTP status code if available"
    )

    @property
    def is_http_status(self) -> bool:
        """Check if the error comes from a non-2xx response."""
        return self.error_class in (
            FetchErrorClass.HTTP_4XX,
            FetchErrorClass.HTTP_5XX,
            FetchErrorClass.HTTP_OTHER,
        )


class FetchResult(BaseModel):
    """Result of a single HTTP round trip.

    Contains the response data or error information. Transport failures
    have ``status_code`` 0 and an ``error``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    method: Annotated[str, Field(min_length=1, description="HTTP method")]
    url: Annotated[str, Field(min_length=1, description="Requested URL")]
    status_code: int = Field(ge=0, le=999, description="HTTP status code")
    final_url: Annotated[
        str, Field(min_length=1, description="Final URL after redirects")
    ]
    headers: dict[str, str] = Field(
        default_factory=dict, description="Response headers"
    )
    body_bytes: bytes = Field(default=b"", description="Response body")
    error: FetchError | None = Field(
        default=None, description="Error details if fetch failed"
    )

    @property
    def is_success(self) -> bool:
        """Check if the fetch was successful (2xx status, no error)."""
        return (
            self.error is None
            and HTTP_STATUS_OK_MIN <= self.status_code < HTTP_STATUS_OK_MAX
        )

    @property
    def body_size(self) -> int:
        """Get the size of the response body in bytes."""
        return len(self.body_bytes)

    @property
    def text(self) -> str:
        """Decode the body as UTF-8, replacing undecodable bytes."""
        return self.body_bytes.decode("utf-8", errors="replace")


class ResponseSizeExceededError(Exception):
    """Raised when response size exceeds the configured limit."""
