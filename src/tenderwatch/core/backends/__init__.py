"""Backend implementations for fetching pages."""

from .base import (
    TRANSIENT_ERRORS,
    Backend,
    BackendError,
    BlockedError,
    FetchError,
    FetchResult,
    FetchTimeoutError,
    HttpStatusError,
    RateLimitError,
    RequestSpec,
    ServerError,
)
from .http_backend import HttpBackend

__all__ = [
    # Base classes
    "Backend",
    "RequestSpec",
    "FetchResult",
    # Errors
    "BackendError",
    "FetchError",
    "FetchTimeoutError",
    "HttpStatusError",
    "ServerError",
    "RateLimitError",
    "BlockedError",
    "TRANSIENT_ERRORS",
    # HTTP backend
    "HttpBackend",
]
