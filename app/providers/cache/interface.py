"""
Abstract interface for cache providers.

Values are JSON-serialized and keys are namespaced with CACHE_KEY_PREFIX
so several services can share one cache.
"""
from __future__ import annotations

import json
from abc import abstractmethod
from typing import Any, ClassVar, Iterable

from ...exceptions import CacheError, ValidationError
from ..base import ProviderInterface
from ..configs import CacheConfig


class CacheProviderInterface(ProviderInterface):
    """
    Abstract interface for key/value caches.

    All implementations must provide the raw string operations
    (_get_raw, _set_raw, _delete_raw, _scan_delete, _increment_raw, _stats).
    """

    family: ClassVar[str] = "cache"

    def __init__(self, config: CacheConfig) -> None:
        super().__init__()
        self._config = config

    def _key(self, key: str) -> str:
        if not key:
            raise ValidationError("Cache key must not be empty")
        return f"{self._config.key_prefix}{key}"

    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None on a miss."""
        self._ensure_available()
        raw = await self._call(
            "get", self._get_raw(self._key(key)),
            timeout=self._config.call_timeout, error_cls=CacheError, target=key,
        )
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise CacheError(
                f"Cached value for '{key}' is not valid JSON",
                details=str(e),
                provider=self.get_provider_name(),
            ) from e

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a JSON-serializable value with a TTL in seconds."""
        self._ensure_available()
        try:
            raw = json.dumps(value, default=str)
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Value for cache key '{key}' is not serializable", details=str(e)) from e
        await self._call(
            "set", self._set_raw(self._key(key), raw, ttl or self._config.default_ttl),
            timeout=self._config.call_timeout, error_cls=CacheError, target=key,
        )

    async def delete(self, key: str) -> bool:
        """Delete one key. Returns whether it existed."""
        return await self.delete_many([key]) > 0

    async def delete_many(self, keys: Iterable[str]) -> int:
        self._ensure_available()
        full_keys = [self._key(key) for key in keys]
        if not full_keys:
            return 0
        return await self._call(
            "delete", self._delete_raw(full_keys),
            timeout=self._config.call_timeout, error_cls=CacheError,
        )

    async def clear_pattern(self, pattern: str = "*") -> int:
        """Delete every key matching a glob pattern. Returns the number removed."""
        self._ensure_available()
        return await self._call(
            "clear_pattern", self._scan_delete(self._key(pattern)),
            timeout=self._config.call_timeout, error_cls=CacheError, target=pattern,
        )

    async def increment(self, key: str, amount: int = 1) -> int:
        """Atomically add to an integer counter, creating it at zero."""
        self._ensure_available()
        return await self._call(
            "increment", self._increment_raw(self._key(key), amount),
            timeout=self._config.call_timeout, error_cls=CacheError, target=key,
        )

    async def stats(self) -> dict[str, Any]:
        self._ensure_available()
        stats = await self._call(
            "stats", self._stats(),
            timeout=self._config.call_timeout, error_cls=CacheError,
        )
        return {"provider": self.get_provider_name(), "connected": True, **stats}

    @abstractmethod
    async def _get_raw(self, key: str) -> str | None: ...

    @abstractmethod
    async def _set_raw(self, key: str, value: str, ttl: int) -> None: ...

    @abstractmethod
    async def _delete_raw(self, keys: list[str]) -> int: ...

    @abstractmethod
    async def _scan_delete(self, pattern: str) -> int: ...

    @abstractmethod
    async def _increment_raw(self, key: str, amount: int) -> int: ...

    @abstractmethod
    async def _stats(self) -> dict[str, Any]: ...
