"""Tests for cache providers.

Covers:
- MemoryCacheProvider: JSON round trip, TTL expiry, key prefixing,
  delete/delete_many, glob clear, increment, stats, expired-entry sweeps,
  undecodable values surfaced as CacheError
- RedisCacheProvider: failed PING is a ProviderInitError and closes the client;
  operations go through the redis client with prefixed keys
- Factory: unknown kind yields a MisconfiguredProvider
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from app.exceptions import CacheError, FeatureUnavailableError, ProviderInitError, ValidationError
from app.providers.base import MisconfiguredProvider
from app.providers.cache import create_cache_provider
from app.providers.cache.memory_impl import MemoryCacheProvider
from app.providers.cache.redis_impl import RedisCacheProvider
from tests.conftest import make_cache_config

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _memory_cache(**overrides: object) -> MemoryCacheProvider:
    cache = MemoryCacheProvider(make_cache_config(**overrides))
    await cache.initialize()
    return cache


def _redis_client(**methods: object) -> MagicMock:
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)
    client.aclose = AsyncMock()
    for name, value in methods.items():
        setattr(client, name, value)
    return client


# ---------------------------------------------------------------------------
# Memory cache
# ---------------------------------------------------------------------------


class TestMemoryCache:
    @pytest.mark.asyncio
    async def test_set_get_round_trip(self) -> None:
        cache = await _memory_cache()
        await cache.set("course:1", {"title": "Python Basics", "seats": 30})
        assert await cache.get("course:1") == {"title": "Python Basics", "seats": 30}

    @pytest.mark.asyncio
    async def test_miss_returns_none(self) -> None:
        cache = await _memory_cache()
        assert await cache.get("missing") is None

    @pytest.mark.asyncio
    async def test_entries_expire(self) -> None:
        cache = await _memory_cache()
        await cache.set("otp:alice", "482913", ttl=1)
        with patch("app.providers.cache.memory_impl.time.monotonic", return_value=10**9):
            assert await cache.get("otp:alice") is None

    @pytest.mark.asyncio
    async def test_keys_are_prefixed(self) -> None:
        cache = await _memory_cache(key_prefix="rtech:")
        await cache.set("a", 1)
        assert list(cache._entries) == ["rtech:a"]

    @pytest.mark.asyncio
    async def test_delete(self) -> None:
        cache = await _memory_cache()
        await cache.set("a", 1)
        assert await cache.delete("a") is True
        assert await cache.delete("a") is False

    @pytest.mark.asyncio
    async def test_delete_many(self) -> None:
        cache = await _memory_cache()
        for key in ("a", "b", "c"):
            await cache.set(key, key)
        assert await cache.delete_many(["a", "b", "zzz"]) == 2
        assert await cache.delete_many([]) == 0

    @pytest.mark.asyncio
    async def test_clear_pattern(self) -> None:
        cache = await _memory_cache()
        await cache.set("session:1", 1)
        await cache.set("session:2", 2)
        await cache.set("course:1", 3)
        assert await cache.clear_pattern("session:*") == 2
        assert await cache.get("course:1") == 3

    @pytest.mark.asyncio
    async def test_increment(self) -> None:
        cache = await _memory_cache()
        assert await cache.increment("hits") == 1
        assert await cache.increment("hits", 5) == 6

    @pytest.mark.asyncio
    async def test_increment_non_integer(self) -> None:
        cache = await _memory_cache()
        await cache.set("name", "alice")
        with pytest.raises(CacheError):
            await cache.increment("name")

    @pytest.mark.asyncio
    async def test_stats(self) -> None:
        cache = await _memory_cache()
        await cache.set("a", 1)
        await cache.get("a")
        await cache.get("b")
        stats = await cache.stats()
        assert stats["provider"] == "memory"
        assert stats["keys"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == 0.5

    @pytest.mark.asyncio
    async def test_expired_entries_swept_on_write(self) -> None:
        cache = await _memory_cache()
        await cache.set("otp:alice", "482913", ttl=1)
        with patch("app.providers.cache.memory_impl.time.monotonic", return_value=10**9):
            await cache.set("otp:bob", "771204", ttl=60)
        assert [key.endswith("otp:bob") for key in cache._entries] == [True]

    @pytest.mark.asyncio
    async def test_stats_prunes_expired(self) -> None:
        cache = await _memory_cache()
        await cache.set("session:1", {"user": "alice"}, ttl=1)
        with patch("app.providers.cache.memory_impl.time.monotonic", return_value=10**9):
            stats = await cache.stats()
        assert stats["keys"] == 0
        assert cache._entries == {}

    @pytest.mark.asyncio
    async def test_corrupt_value_is_cache_error(self) -> None:
        cache = await _memory_cache()
        await cache.set("course:1", {"title": "Python Basics"})
        key = next(iter(cache._entries))
        cache._entries[key] = (cache._entries[key][0], "{not json")

        with pytest.raises(CacheError) as exc_info:
            await cache.get("course:1")

        assert exc_info.value.provider == "memory"
        assert "course:1" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unserializable_value_rejected(self) -> None:
        cache = await _memory_cache()
        with pytest.raises(ValidationError):
            await cache.set("bad", _Unserializable())

    @pytest.mark.asyncio
    async def test_empty_key_rejected(self) -> None:
        cache = await _memory_cache()
        with pytest.raises(ValidationError):
            await cache.get("")

    @pytest.mark.asyncio
    async def test_unavailable_before_init(self) -> None:
        cache = MemoryCacheProvider(make_cache_config())
        with pytest.raises(FeatureUnavailableError):
            await cache.get("a")


class _Unserializable:
    def __str__(self) -> str:
        raise ValueError("cannot render")


# ---------------------------------------------------------------------------
# Redis cache
# ---------------------------------------------------------------------------


class TestRedisCache:
    @pytest.mark.asyncio
    async def test_failed_ping_is_init_error(self) -> None:
        client = _redis_client(ping=AsyncMock(side_effect=RedisConnectionError("Connection refused")))
        provider = RedisCacheProvider(make_cache_config(kind="redis"))

        with patch("app.providers.cache.redis_impl.aioredis.Redis", return_value=client):
            with pytest.raises(ProviderInitError, match="Cannot connect to Redis"):
                await provider.initialize()

        client.aclose.assert_awaited_once()
        assert not provider.is_available()

    @pytest.mark.asyncio
    async def test_hanging_ping_is_init_error(self) -> None:
        async def _hang() -> bool:
            await asyncio.sleep(10)
            return True

        client = _redis_client(ping=_hang)
        provider = RedisCacheProvider(make_cache_config(kind="redis", call_timeout=0.05))

        with patch("app.providers.cache.redis_impl.aioredis.Redis", return_value=client):
            with pytest.raises(ProviderInitError):
                await provider.initialize()

    @pytest.mark.asyncio
    async def test_operations_use_prefixed_keys(self) -> None:
        client = _redis_client(
            get=AsyncMock(return_value='{"seats": 30}'),
            set=AsyncMock(return_value=True),
            incrby=AsyncMock(return_value=7),
        )
        provider = RedisCacheProvider(make_cache_config(kind="redis", key_prefix="rtech:", default_ttl=60))

        with patch("app.providers.cache.redis_impl.aioredis.Redis", return_value=client):
            await provider.initialize()

        assert await provider.get("course:1") == {"seats": 30}
        client.get.assert_awaited_once_with("rtech:course:1")

        await provider.set("course:1", {"seats": 29})
        client.set.assert_awaited_once_with("rtech:course:1", '{"seats": 29}', ex=60)

        assert await provider.increment("hits", 2) == 7
        client.incrby.assert_awaited_once_with("rtech:hits", 2)

    @pytest.mark.asyncio
    async def test_library_error_becomes_cache_error(self) -> None:
        client = _redis_client(get=AsyncMock(side_effect=RedisConnectionError("Connection reset by peer")))
        provider = RedisCacheProvider(make_cache_config(kind="redis"))

        with patch("app.providers.cache.redis_impl.aioredis.Redis", return_value=client):
            await provider.initialize()

        with pytest.raises(CacheError) as exc_info:
            await provider.get("a")
        assert exc_info.value.retryable is True


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestCacheFactory:
    def test_known_kinds(self) -> None:
        assert isinstance(create_cache_provider(make_cache_config(kind="memory")), MemoryCacheProvider)
        assert isinstance(create_cache_provider(make_cache_config(kind="redis")), RedisCacheProvider)

    def test_unknown_kind(self) -> None:
        provider = create_cache_provider(make_cache_config(kind="memcached"))
        assert isinstance(provider, MisconfiguredProvider)
        assert provider.family == "cache"
