"""
Backend base classes and data structures.

Defines the interface contract for fetch backends and the error
taxonomy adapters use to classify failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from tenderwatch.core.models import utcnow


@dataclass
class RequestSpec:
    """Specification for an HTTP GET request."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)
    params: dict[str, str] = field(default_factory=dict)
    timeout: float | None = None  # None uses the backend default
    follow_redirects: bool = True

    # Metadata for logging
    source_id: str | None = None


@dataclass
class FetchResult:
    """Result of a fetch operation."""

    url: str
    final_url: str  # After redirects
    status_code: int
    html: str
    headers: dict[str, str]

    # Timing
    elapsed_ms: float
    fetched_at: datetime = field(default_factory=utcnow)

    retry_count: int = 0

    @property
    def ok(self) -> bool:
        """Check if request was successful (2xx status)."""
        return 200 <= self.status_code < 300

    @property
    def content_length(self) -> int:
        return len(self.html.encode("utf-8"))


class Backend(ABC):
    """Abstract base class for fetch backends."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier."""

    @abstractmethod
    async def fetch(self, request: RequestSpec) -> FetchResult:
        """Fetch a URL and return the response.

        Args:
            request: Request specification

        Returns:
            FetchResult with a 2xx response

        Raises:
            BackendError: On unrecoverable fetch failure
        """

    async def close(self) -> None:
        """Release backend resources."""

    async def __aenter__(self) -> "Backend":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()


# =============================================================================
# Errors
# =============================================================================


class BackendError(Exception):
    """Base exception for backend errors.

    ``kind`` is a short classification used in job status and logs.
    """

    kind = "network"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.cause = cause


class FetchError(BackendError):
    """Transport-level failure (connection refused, reset, DNS)."""


class FetchTimeoutError(FetchError):
    """The request did not complete within the timeout."""

    kind = "timeout"


class HttpStatusError(BackendError):
    """Non-2xx response that is not worth retrying."""

    kind = "http"


class ServerError(HttpStatusError):
    """5xx response; treated as transient."""


class RateLimitError(BackendError):
    """Rate limit hit (429 or similar)."""

    kind = "rate_limited"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(message, url, status_code=429)
        self.retry_after = retry_after


class BlockedError(BackendError):
    """Request refused by the site (403 and friends)."""

    kind = "blocked"


# Errors that are retried with backoff
TRANSIENT_ERRORS: tuple[type[BackendError], ...] = (FetchError, ServerError, RateLimitError)
