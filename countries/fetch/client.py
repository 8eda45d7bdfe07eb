"""Single-attempt HTTP client with size limits and failure classification."""

import time
from io import BytesIO

import httpx
import structlog

from countries.fetch.config import FetchConfig
from countries.fetch.constants import (
    DEFAULT_CHUNK_SIZE,
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
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


logger = structlog.get_logger()


class HttpFetcher:
    """HTTP client performing exactly one attempt per call.

    Failures never raise: they come back as a ``FetchResult`` carrying
    a typed ``FetchError``. Provides:
    - GET and form POST
    - Maximum response size enforcement on streamed bodies
    - Header and form field redaction for logging
    - Metrics collection
    """

    def __init__(
        self,
        config: FetchConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP fetcher.

        Args:
            config: Fetch configuration.
            transport: Optional httpx transport (e.g. ``httpx.MockTransport``).
        """
        self._config = config or FetchConfig()
        self._transport = transport
        self._metrics = FetchMetrics.get_instance()
        self._log = logger.bind(component="fetch")

    @property
    def config(self) -> FetchConfig:
        """Get the fetch configuration."""
        return self._config

    def get(
        self,
        url: str,
        params: dict[str, str] | None = None,
    ) -> FetchResult:
        """Fetch a URL with GET.

        Args:
            url: The URL to fetch.
            params: Query parameters merged into the URL.

        Returns:
            FetchResult with status, body and error information.
        """
        return self._execute("GET", url, params=params)

    def post(
        self,
        url: str,
        data: dict[str, str],
        params: dict[str, str] | None = None,
    ) -> FetchResult:
        """Submit a form-encoded POST.

        Args:
            url: Target URL.
            data: Form fields.
            params: Query parameters merged into the URL.

        Returns:
            FetchResult with status, body and error information.
        """
        return self._execute("POST", url, params=params, data=data)

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "User-Agent": self._config.user_agent,
            "Accept": "*/*",
            "Accept-Encoding": "gzip, deflate",
        }
        headers.update(self._config.extra_headers)
        return headers

    def _execute(
        self,
        method: str,
        url: str,
        params: dict[str, str] | None = None,
        data: dict[str, str] | None = None,
    ) -> FetchResult:
        """Execute one request and classify its outcome.

        Args:
            method: HTTP method.
            url: URL to request.
            params: Query parameters.
            data: Form fields for POST.

        Returns:
            FetchResult from the request.
        """
        start_time_ns = time.perf_counter_ns()
        headers = self._build_headers()
        log = self._log.bind(
            method=method,
            url=redact_url_credentials(url),
        )
        log.debug(
            "request_started",
            headers=redact_headers(headers),
            form=redact_form_fields(data) if data else None,
        )
        self._metrics.record_round_trip(method)

        result = self._execute_single(method, url, headers, params, data)

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_duration(duration_ms)
        if result.error is not None:
            self._metrics.record_failure(result.error.error_class)

        log.info(
            "fetch_complete",
            status_code=result.status_code,
            bytes=result.body_size,
            duration_ms=round(duration_ms, 2),
            error_class=result.error.error_class.value if result.error else None,
        )
        return result

    def _execute_single(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        params: dict[str, str] | None,
        data: dict[str, str] | None,
    ) -> FetchResult:
        try:
            with (
                httpx.Client(
                    timeout=self._config.timeout_seconds,
                    follow_redirects=self._config.follow_redirects,
                    transport=self._transport,
                ) as client,
                client.stream(
                    method, url, headers=headers, params=params, data=data
                ) as response,
            ):
                content_length = response.headers.get("content-length")
                if content_length and content_length.isdigit():
                    size = int(content_length)
                    if size > self._config.max_response_size_bytes:
                        return self._failure(
                            method,
                            url,
                            FetchErrorClass.RESPONSE_SIZE_EXCEEDED,
                            f"Response size {size} exceeds limit "
                            f"{self._config.max_response_size_bytes}",
                            status_code=response.status_code,
                        )

                body = self._read_body_with_limit(response)
                self._metrics.record_request(response.status_code, len(body))

                return FetchResult(
                    method=method,
                    url=url,
                    status_code=response.status_code,
                    final_url=str(response.url),
                    headers=dict(response.headers),
                    body_bytes=body,
                    error=self._classify_http_error(response.status_code),
                )

        except ResponseSizeExceededError as e:
            return self._failure(
                method, url, FetchErrorClass.RESPONSE_SIZE_EXCEEDED, str(e)
            )

        except httpx.TimeoutException as e:
            return self._failure(
                method, url, FetchErrorClass.NETWORK_TIMEOUT, f"Request timed out: {e}"
            )

        except httpx.ConnectError as e:
            return self._failure(
                method, url, FetchErrorClass.CONNECTION_ERROR, f"Connection failed: {e}"
            )

        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            return self._failure(
                method, url, FetchErrorClass.INVALID_URL, f"Invalid URL: {e}"
            )

        except Exception as e:  # noqa: BLE001
            return self._failure(
                method, url, FetchErrorClass.UNKNOWN, f"Unexpected error: {e}"
            )

    def _failure(
        self,
        method: str,
        url: str,
        error_class: FetchErrorClass,
        message: str,
        status_code: int = 0,
    ) -> FetchResult:
        return FetchResult(
            method=method,
            url=url,
            status_code=status_code,
            final_url=url,
            error=FetchError(
                error_class=error_class,
                message=message,
                status_code=status_code or None,
            ),
        )

    def _read_body_with_limit(self, response: httpx.Response) -> bytes:
        """Read response body with size limit.

        Args:
            response: Streaming HTTP response.

        Returns:
            Response body bytes.

        Raises:
            ResponseSizeExceededError: If the size limit is exceeded.
        """
        buffer = BytesIO()
        total_read = 0
        max_size = self._config.max_response_size_bytes

        for chunk in response.iter_bytes(chunk_size=DEFAULT_CHUNK_SIZE):
            total_read += len(chunk)
            if total_read > max_size:
                msg = (
                    f"Response size exceeded limit of {max_size} bytes "
                    f"(read {total_read} bytes)"
                )
                raise ResponseSizeExceededError(msg)
            buffer.write(chunk)

        return buffer.getvalue()

    def _classify_http_error(self, status_code: int) -> FetchError | None:
        """Classify HTTP status code as error.

        Args:
            status_code: HTTP status code.

        Returns:
            None for 2xx, otherwise the FetchError for the status.
        """
        if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
            return None

        if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
            return FetchError(
                error_class=FetchErrorClass.HTTP_4XX,
                message=f"Client error ({status_code})",
                status_code=status_code,
            )

        if HTTP_STATUS_SERVER_ERROR_MIN <= status_code < HTTP_STATUS_SERVER_ERROR_MAX:
            return FetchError(
                error_class=FetchErrorClass.HTTP_5XX,
                message=f"Server error ({status_code})",
                status_code=status_code,
            )

        return FetchError(
            error_class=FetchErrorClass.HTTP_OTHER,
            message=f"Unexpected status ({status_code})",
            status_code=status_code,
        )
