"""Config module exports."""

from contextdex.config.loader import get_index_path, load_config
from contextdex.config.models import (
    ContextdexConfig,
    ExtractorConfig,
    FallbackConfig,
    IndexConfig,
    LoggingConfig,
    SearchConfig,
    ServerConfig,
    WatcherConfig,
)

__all__ = [
    "load_config",
    "get_index_path",
    "ContextdexConfig",
    "ExtractorConfig",
    "FallbackConfig",
    "IndexConfig",
    "LoggingConfig",
    "SearchConfig",
    "ServerConfig",
    "WatcherConfig",
]
