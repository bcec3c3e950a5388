"""CLI command modules."""

from . import schedule, scrape, serve, sources

__all__ = [
    "schedule",
    "scrape",
    "serve",
    "sources",
]
