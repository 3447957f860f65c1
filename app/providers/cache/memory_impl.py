"""
In-process Cache Provider implementation.

For local development and single-instance deployments. Entries expire
on access and are swept on write and on stats.
"""
from __future__ import annotations

import threading
import time
from fnmatch import fnmatchcase
from typing import Any

from ...config import get_logger
from ...exceptions import CacheError
from ..configs import CacheConfig
from .interface import CacheProviderInterface

logger = get_logger("cache.memory")


class MemoryCacheProvider(CacheProviderInterface):
    """Dictionary-backed cache with per-entry expiry."""

    # Minimum seconds between full sweeps of expired entries on write
    sweep_interval: float = 60.0

    def __init__(self, config: CacheConfig) -> None:
        super().__init__(config)
        self._entries: dict[str, tuple[float, str]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._next_sweep = 0.0

    async def initialize(self) -> None:
        self._initialized = True
        logger.info("In-memory cache initialized (default ttl: %ds)", self._config.default_ttl)

    def _live(self, key: str, now: float) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at <= now:
            del self._entries[key]
            return None
        return value

    def _sweep(self, now: float) -> None:
        expired = [key for key, (expires_at, _) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._next_sweep = now + self.sweep_interval
        if expired:
            logger.debug("Pruned %d expired cache entries", len(expired))

    async def _get_raw(self, key: str) -> str | None:
        with self._lock:
            value = self._live(key, time.monotonic())
            if value is None:
                self._misses += 1
            else:
                self._hits += 1
            return value

    async def _set_raw(self, key: str, value: str, ttl: int) -> None:
        now = time.monotonic()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
            self._entries[key] = (now + ttl, value)

    async def _delete_raw(self, keys: list[str]) -> int:
        now = time.monotonic()
        deleted = 0
        with self._lock:
            for key in keys:
                if self._live(key, now) is not None:
                    del self._entries[key]
                    deleted += 1
        return deleted

    async def _scan_delete(self, pattern: str) -> int:
        with self._lock:
            matches = [key for key in self._entries if fnmatchcase(key, pattern)]
            for key in matches:
                del self._entries[key]
        return len(matches)

    async def _increment_raw(self, key: str, amount: int) -> int:
        now = time.monotonic()
        with self._lock:
            current = self._live(key, now)
            try:
                value = int(current or 0) + amount
            except ValueError:
                raise CacheError(f"Value at '{key}' is not an integer", provider="memory") from None
            expires_at = self._entries[key][0] if current is not None else now + self._config.default_ttl
            self._entries[key] = (expires_at, str(value))
            return value

    async def _stats(self) -> dict[str, Any]:
        now = time.monotonic()
        with self._lock:
            self._sweep(now)
            keys = len(self._entries)
            hits, misses = self._hits, self._misses
        return {
            "keys": keys,
            "hits": hits,
            "misses": misses,
            "hit_rate": round(hits / (hits + misses), 4) if hits + misses else 0.0,
        }

    def get_provider_name(self) -> str:
        return "memory"

    async def close(self) -> None:
        with self._lock:
            self._entries.clear()
        await super().close()
