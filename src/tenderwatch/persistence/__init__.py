"""Database persistence layer."""

from .db import DEFAULT_DATABASE_URL, Database, get_async_url
from .models import Base, CachedResult

__all__ = [
    "DEFAULT_DATABASE_URL",
    "Database",
    "get_async_url",
    "Base",
    "CachedResult",
]
