"""
Read-through caching for endpoint responses.

The cache only ever speeds things up: when the cache provider did not
initialize, or a cache call fails, the value is computed directly and the
request still succeeds.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable

from app.config import get_logger
from app.exceptions import BackendException
from app.providers.base import ProviderInterface
from app.providers.cache import CacheProviderInterface

logger = get_logger("response_cache")


def _usable(cache: ProviderInterface | None) -> CacheProviderInterface | None:
    if isinstance(cache, CacheProviderInterface) and cache.is_available():
        return cache
    return None


async def get_or_compute(
    cache: ProviderInterface | None,
    key: str,
    compute: Callable[[], Awaitable[Any]],
    ttl: int | None = None,
) -> Any:
    """
    Return the cached value for key, computing and storing it on a miss.

    Args:
        cache: Cache provider (may be unavailable or not a cache at all)
        key: Cache key, without the global prefix
        compute: Coroutine factory producing a JSON-serializable value
        ttl: Entry lifetime in seconds; 0 bypasses the cache entirely

    Returns:
        The cached or freshly computed value
    """
    provider = _usable(cache) if ttl != 0 else None
    if provider is not None:
        try:
            cached = await provider.get(key)
        except BackendException as e:
            logger.warning("Response cache read failed | key=%s | error=%s", key, e.message)
        else:
            if cached is not None:
                logger.debug("Response cache hit | key=%s", key)
                return cached

    value = await compute()

    if provider is not None:
        try:
            await provider.set(key, value, ttl=ttl)
        except BackendException as e:
            logger.warning("Response cache write failed | key=%s | error=%s", key, e.message)
    return value


async def invalidate(cache: ProviderInterface | None, pattern: str) -> int:
    """Drop cached responses matching a glob pattern. Failures are logged, not raised."""
    provider = _usable(cache)
    if provider is None:
        return 0
    try:
        return await provider.clear_pattern(pattern)
    except BackendException as e:
        logger.warning("Response cache invalidation failed | pattern=%s | error=%s", pattern, e.message)
        return 0
