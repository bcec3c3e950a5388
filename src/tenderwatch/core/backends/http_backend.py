"""
HTTP Backend implementation using httpx.

Provides async HTTP fetching with:
- Browser-like default headers
- Bounded per-request timeout
- Automatic retry with exponential backoff for transient failures
- Block and rate limit detection
"""

from __future__ import annotations

import time

import httpx

from tenderwatch.core.config.models import DEFAULT_USER_AGENT, HttpConfig
from tenderwatch.core.fetch.retries import RetryConfig, retry_async
from tenderwatch.core.logging import get_logger

from .base import (
    TRANSIENT_ERRORS,
    Backend,
    BlockedError,
    FetchError,
    FetchResult,
    FetchTimeoutError,
    HttpStatusError,
    RateLimitError,
    RequestSpec,
    ServerError,
)

logger = get_logger("backends.http")

# Status codes that indicate blocking
BLOCKED_STATUS_CODES = {403, 406, 418, 451}

# Status codes that should trigger retry
RETRY_STATUS_CODES = {500, 502, 503, 504}


class HttpBackend(Backend):
    """HTTP backend using httpx for async requests.

    Features:
    - Persistent connection pooling
    - Automatic redirect following
    - Retry with exponential backoff
    - Rate limit detection
    """

    def __init__(
        self,
        config: HttpConfig | None = None,
        default_headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize HTTP backend.

        Args:
            config: Timeout and retry settings
            default_headers: Extra headers for all requests
            transport: Custom httpx transport (tests pass ``httpx.MockTransport``)
        """
        self.config = config or HttpConfig()
        self.retry_config = RetryConfig.from_http_config(
            self.config,
            retry_exceptions=TRANSIENT_ERRORS,
        )
        self._transport = transport

        self.default_headers = {
            "User-Agent": self.config.user_agent or DEFAULT_USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            **(default_headers or {}),
        }

        self._client: httpx.AsyncClient | None = None

    @property
    def name(self) -> str:
        return "http"

    def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds),
                follow_redirects=True,
                headers=self.default_headers,
                limits=httpx.Limits(
                    max_connections=20,
                    max_keepalive_connections=10,
                ),
                transport=self._transport,
            )
        return self._client

    def _check_status(self, response: httpx.Response) -> None:
        """Raise the matching error for a non-2xx response."""
        status = response.status_code
        url = str(response.url)

        if status == 429:
            retry_after = response.headers.get("Retry-After")
            retry_seconds = None
            if retry_after:
                try:
                    retry_seconds = float(retry_after)
                except ValueError:
                    retry_seconds = None
            raise RateLimitError("Rate limit exceeded", url=url, retry_after=retry_seconds)

        if status in BLOCKED_STATUS_CODES:
            raise BlockedError(
                f"Request blocked with status {status}",
                url=url,
                status_code=status,
            )

        if status in RETRY_STATUS_CODES or status >= 500:
            raise ServerError(f"Server error {status}", url=url, status_code=status)

        if not 200 <= status < 300:
            raise HttpStatusError(f"Unexpected status {status}", url=url, status_code=status)

    async def _fetch_once(self, request: RequestSpec) -> FetchResult:
        client = self._ensure_client()
        timeout = request.timeout or self.config.timeout_seconds
        start = time.monotonic()

        try:
            response = await client.get(
                request.url,
                headers=request.headers or None,
                params=request.params or None,
                follow_redirects=request.follow_redirects,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise FetchTimeoutError(
                f"Timed out after {timeout}s",
                url=request.url,
                cause=e,
            ) from e
        except httpx.TransportError as e:
            raise FetchError(f"Transport error: {e}", url=request.url, cause=e) from e

        elapsed_ms = (time.monotonic() - start) * 1000
        self._check_status(response)

        return FetchResult(
            url=request.url,
            final_url=str(response.url),
            status_code=response.status_code,
            html=response.text,
            headers=dict(response.headers),
            elapsed_ms=elapsed_ms,
        )

    async def fetch(self, request: RequestSpec) -> FetchResult:
        """Fetch a URL with automatic retry.

        Transport errors, timeouts, 429 and 5xx are retried; blocked and
        other non-2xx responses fail immediately.

        Raises:
            BackendError: The last error once retries are exhausted
        """
        attempts = 0

        def on_attempt(number: int) -> None:
            nonlocal attempts
            attempts = number
            if number > 1:
                logger.info(
                    f"Retrying {request.url} (attempt {number}/{self.retry_config.max_attempts})",
                    extra={"source": request.source_id, "url": request.url, "attempt": number},
                )

        result = await retry_async(
            self._fetch_once,
            request,
            config=self.retry_config,
            on_attempt=on_attempt,
        )
        result.retry_count = attempts - 1
        return result

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
