"""Site adapters: one per tender source."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import ScrapeError, SiteAdapter
from .enumerating import EnumeratingAdapter

if TYPE_CHECKING:
    from tenderwatch.core.backends.base import Backend
    from tenderwatch.core.config.models import SourceConfig


def create_adapter(config: SourceConfig, backend: Backend) -> SiteAdapter:
    """Build the adapter for a source configuration."""
    if config.enumeration is not None:
        return EnumeratingAdapter(config, backend)
    return SiteAdapter(config, backend)


__all__ = [
    "ScrapeError",
    "SiteAdapter",
    "EnumeratingAdapter",
    "create_adapter",
]
