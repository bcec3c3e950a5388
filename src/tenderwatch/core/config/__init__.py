"""Configuration loading and validation."""

from .models import (
    # Enums
    CacheBackendType,
    # Parsing strategies
    CellClassStrategy,
    ColumnTableStrategy,
    LinkListStrategy,
    ParsingStrategy,
    # Config models
    ApiConfig,
    AppConfig,
    CacheConfig,
    EnumerationConfig,
    HttpConfig,
    LoggingConfig,
    QueryConfig,
    SchedulerConfig,
    SourceConfig,
)
from .loader import ConfigError, load_app_config, merge_source_overrides
from .sources import DEFAULT_SOURCES

__all__ = [
    # Enums
    "CacheBackendType",
    # Parsing strategies
    "CellClassStrategy",
    "ColumnTableStrategy",
    "LinkListStrategy",
    "ParsingStrategy",
    # Config models
    "ApiConfig",
    "AppConfig",
    "CacheConfig",
    "EnumerationConfig",
    "HttpConfig",
    "LoggingConfig",
    "QueryConfig",
    "SchedulerConfig",
    "SourceConfig",
    # Loaders
    "ConfigError",
    "load_app_config",
    "merge_source_overrides",
    "DEFAULT_SOURCES",
]
