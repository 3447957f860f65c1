"""
Cache Provider - Factory module for key/value caching.

Selects the appropriate cache implementation based on configuration.
"""
from __future__ import annotations

from ...config import get_logger
from ..base import MisconfiguredProvider, ProviderInterface
from ..configs import CacheConfig
from .interface import CacheProviderInterface

logger = get_logger("cache.provider")

SUPPORTED_PROVIDERS = ("redis", "memory")


def create_cache_provider(config: CacheConfig) -> ProviderInterface:
    """Build the cache provider selected by ``config.kind``."""
    if config.kind == "redis":
        from .redis_impl import RedisCacheProvider
        provider: ProviderInterface = RedisCacheProvider(config)
    elif config.kind == "memory":
        from .memory_impl import MemoryCacheProvider
        provider = MemoryCacheProvider(config)
    else:
        logger.error(
            "Unknown cache provider: %s. Supported: %s",
            config.kind, ", ".join(SUPPORTED_PROVIDERS),
        )
        return MisconfiguredProvider(
            "cache",
            config.kind,
            f"Unknown cache provider: {config.kind}. Supported: {', '.join(SUPPORTED_PROVIDERS)}",
        )

    logger.info("Cache Provider: %s", config.kind)
    return provider


__all__ = ["CacheProviderInterface", "create_cache_provider"]
