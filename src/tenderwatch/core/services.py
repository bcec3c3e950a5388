"""
Composition root: builds the backend, adapters, cache, orchestrator and
query facade from one AppConfig.
"""

from __future__ import annotations

from dataclasses import dataclass

from tenderwatch.core.adapters import SiteAdapter, create_adapter
from tenderwatch.core.backends import Backend, HttpBackend
from tenderwatch.core.cache import CacheStore, build_cache_store
from tenderwatch.core.config.models import AppConfig
from tenderwatch.core.fallback import FallbackProvider
from tenderwatch.core.logging import get_logger
from tenderwatch.core.query import QueryFacade
from tenderwatch.core.scheduler import ScraperOrchestrator

logger = get_logger("services")


@dataclass
class Services:
    """Everything the API and CLI need, owned by one object."""

    config: AppConfig
    backend: Backend
    adapters: dict[str, SiteAdapter]
    cache: CacheStore
    fallback: FallbackProvider
    orchestrator: ScraperOrchestrator
    query: QueryFacade

    async def aclose(self) -> None:
        """Stop timers, let in-flight runs finish, then release resources."""
        self.orchestrator.stop()
        await self.orchestrator.wait_idle()
        await self.query.wait_background()
        await self.backend.close()
        await self.cache.close()


def wire_services(
    config: AppConfig,
    backend: Backend,
    cache: CacheStore,
) -> Services:
    """Assemble services around an existing backend and cache store."""
    adapters = {source.id: create_adapter(source, backend) for source in config.sources}
    fallback = FallbackProvider(config.sources)
    orchestrator = ScraperOrchestrator(
        sources=config.sources,
        adapters=adapters,
        cache=cache,
        config=config.scheduler,
        cache_ttl_seconds=config.cache.ttl_seconds,
    )
    query = QueryFacade(
        adapters=adapters,
        cache=cache,
        fallback=fallback,
        cache_config=config.cache,
        query_config=config.query,
        orchestrator=orchestrator,
    )
    return Services(
        config=config,
        backend=backend,
        adapters=adapters,
        cache=cache,
        fallback=fallback,
        orchestrator=orchestrator,
        query=query,
    )


async def build_services(config: AppConfig, backend: Backend | None = None) -> Services:
    """Create services from configuration.

    Args:
        config: Application configuration
        backend: Fetch backend (default: HttpBackend from ``config.http``)
    """
    cache = await build_cache_store(config.cache)
    services = wire_services(config, backend or HttpBackend(config.http), cache)
    logger.info(
        f"Services ready: {len(services.adapters)} sources, "
        f"{config.cache.backend.value} cache"
    )
    return services
