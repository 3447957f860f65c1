"""
Redis Cache Provider implementation.

Uses redis.asyncio; the connection is verified with PING at startup.
"""
from __future__ import annotations

import asyncio
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ...config import get_logger
from ...exceptions import ProviderInitError
from ..configs import CacheConfig
from .interface import CacheProviderInterface

logger = get_logger("cache.redis")

_SCAN_BATCH = 500


class RedisCacheProvider(CacheProviderInterface):
    """Cache backed by a Redis server."""

    def __init__(self, config: CacheConfig) -> None:
        super().__init__(config)
        self._client: aioredis.Redis | None = None

    async def initialize(self) -> None:
        config = self._config
        client = aioredis.Redis(
            host=config.redis_host,
            port=config.redis_port,
            password=config.redis_password,
            db=config.redis_db,
            decode_responses=True,
            socket_timeout=config.call_timeout,
            socket_connect_timeout=config.call_timeout,
        )
        try:
            await asyncio.wait_for(client.ping(), timeout=config.call_timeout)
        except (RedisError, OSError, asyncio.TimeoutError) as e:
            await client.aclose()
            raise ProviderInitError(
                f"Cannot connect to Redis at {config.redis_host}:{config.redis_port}",
                details=str(e) or type(e).__name__,
                provider="redis",
            ) from e

        self._client = client
        self._initialized = True
        logger.info("Redis cache connected (%s:%d, db %d)", config.redis_host, config.redis_port, config.redis_db)

    async def _get_raw(self, key: str) -> str | None:
        return await self._client.get(key)

    async def _set_raw(self, key: str, value: str, ttl: int) -> None:
        await self._client.set(key, value, ex=ttl)

    async def _delete_raw(self, keys: list[str]) -> int:
        return await self._client.delete(*keys)

    async def _scan_delete(self, pattern: str) -> int:
        deleted = 0
        batch: list[str] = []
        async for key in self._client.scan_iter(match=pattern, count=_SCAN_BATCH):
            batch.append(key)
            if len(batch) >= _SCAN_BATCH:
                deleted += await self._client.delete(*batch)
                batch.clear()
        if batch:
            deleted += await self._client.delete(*batch)
        return deleted

    async def _increment_raw(self, key: str, amount: int) -> int:
        return await self._client.incrby(key, amount)

    async def _stats(self) -> dict[str, Any]:
        info = await self._client.info("stats")
        hits = int(info.get("keyspace_hits", 0))
        misses = int(info.get("keyspace_misses", 0))
        return {
            "keys": await self._client.dbsize(),
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / (hits + misses), 4) if hits + misses else 0.0,
        }

    async def health_check(self) -> bool:
        if not self._client:
            return False
        try:
            return bool(await self._client.ping())
        except (RedisError, OSError) as e:
            logger.warning("Redis health check failed: %s", e)
            return False

    def get_provider_name(self) -> str:
        return "redis"

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("Redis connection closed")
        await super().close()
