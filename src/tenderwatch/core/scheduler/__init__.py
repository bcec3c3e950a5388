"""Scheduling of per-source scrape jobs."""

from .locks import RunLock, RunLockRegistry
from .service import ScraperOrchestrator, failure_backoff_minutes

__all__ = [
    "RunLock",
    "RunLockRegistry",
    "ScraperOrchestrator",
    "failure_backoff_minutes",
]
