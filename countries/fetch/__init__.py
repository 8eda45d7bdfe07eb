"""HTTP fetch layer.

Single-attempt HTTP operations with:
- GET and form POST through httpx
- Maximum response size enforcement
- Typed failure classification instead of exceptions
- Header and form field redaction for logging
- Metrics collection for observability
"""

from countries.fetch.client import HttpFetcher
from countries.fetch.config import FetchConfig
from countries.fetch.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_MAX_RESPONSE_SIZE_BYTES,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
)
from countries.fetch.metrics import FetchMetrics
from countries.fetch.models import (
    FetchError,
    FetchErrorClass,
    FetchResult,
    ResponseSizeExceededError,
)
from countries.fetch.redact import (
    redact_form_fields,
    redact_headers,
    redact_url_credentials,
)


__all__ = [
    # Client
    "HttpFetcher",
    # Config
    "FetchConfig",
    # Models
    "FetchResult",
    "FetchError",
    "FetchErrorClass",
    "ResponseSizeExceededError",
    # Constants
    "HTTP_STATUS_OK_MIN",
    "HTTP_STATUS_OK_MAX",
    "DEFAULT_MAX_RESPONSE_SIZE_BYTES",
    "DEFAULT_CHUNK_SIZE",
    # Metrics
    "FetchMetrics",
    # Redaction
    "redact_form_fields",
    "redact_headers",
    "redact_url_credentials",
]
