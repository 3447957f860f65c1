"""
Common base for every provider family.

Each family (storage, email, cache, database) has its own abstract
interface derived from ProviderInterface. The base owns the lifecycle
flags and the single timed wrapper through which all provider I/O goes,
so timeouts, error typing and logging behave the same everywhere.
"""
from __future__ import annotations

import asyncio
import time
from abc import ABC, abstractmethod
from typing import Awaitable, ClassVar, TypeVar

from ..config import get_logger
from ..exceptions import (
    BackendException,
    FeatureUnavailableError,
    ProviderCallError,
    ProviderInitError,
    ProviderTimeoutError,
)
from ..utils import is_retryable_error

logger = get_logger("providers")

T = TypeVar("T")


class ProviderInterface(ABC):
    """
    Abstract base for all backing-service clients.

    All implementations must provide:
    - initialize(): establish connections / validate credentials
    - get_provider_name(): the configured kind (e.g. "s3", "smtp")

    and may override health_check() and close().
    """

    family: ClassVar[str] = "provider"

    def __init__(self) -> None:
        self._initialized = False

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the provider.

        Raises:
            ProviderInitError: If the provider cannot become available
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Get the provider name (e.g., 's3', 'sendgrid', 'redis')."""

    async def health_check(self) -> bool:
        """Probe the backing service. Defaults to the availability flag."""
        return self.is_available()

    def is_available(self) -> bool:
        """Check if the provider initialized successfully."""
        return self._initialized

    async def close(self) -> None:
        """Release connections held by the provider."""
        self._initialized = False

    def _ensure_available(self) -> None:
        if not self.is_available():
            raise FeatureUnavailableError(
                f"{self.family.capitalize()} provider '{self.get_provider_name()}' is not available",
            )

    async def _call(
        self,
        operation: str,
        awaitable: Awaitable[T],
        *,
        timeout: float,
        error_cls: type[ProviderCallError] = ProviderCallError,
        target: str | None = None,
    ) -> T:
        """
        Run one provider I/O call under a timeout.

        The awaited call is cancelled when the timeout expires. Failures are
        logged with provider identity and elapsed time, then re-raised as
        typed errors; library exceptions are wrapped in ``error_cls``.
        """
        provider = self.get_provider_name()
        start = time.perf_counter()
        try:
            result = await asyncio.wait_for(awaitable, timeout=timeout)
        except asyncio.TimeoutError:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.warning(
                "Provider call timed out | provider=%s | operation=%s | target=%s | elapsed_ms=%.1f",
                provider, operation, target, elapsed_ms,
            )
            raise ProviderTimeoutError(
                f"{provider} {operation} timed out after {timeout:.1f}s",
                provider=provider,
            ) from None
        except BackendException as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.warning(
                "Provider call failed | provider=%s | operation=%s | target=%s | elapsed_ms=%.1f | error=%s",
                provider, operation, target, elapsed_ms, e.message,
            )
            raise
        except Exception as e:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "Provider call failed | provider=%s | operation=%s | target=%s | elapsed_ms=%.1f | error=%s: %s",
                provider, operation, target, elapsed_ms, type(e).__name__, e,
            )
            raise error_cls(
                f"{provider} {operation} failed",
                details=str(e) or type(e).__name__,
                provider=provider,
                retryable=is_retryable_error(e),
            ) from e

        logger.debug(
            "Provider call ok | provider=%s | operation=%s | target=%s | elapsed_ms=%.1f",
            provider, operation, target, (time.perf_counter() - start) * 1000,
        )
        return result


class MisconfiguredProvider(ProviderInterface):
    """
    Stand-in for a family whose configured kind is unknown or whose
    settings could not be parsed.

    Initialization always fails, so the misconfiguration shows up as one
    failed entry in the init report instead of aborting startup.
    """

    def __init__(self, family: str, kind: str, reason: str) -> None:
        super().__init__()
        self.family = family
        self._kind = kind or "unconfigured"
        self._reason = reason

    async def initialize(self) -> None:
        raise ProviderInitError(self._reason, provider=self._kind)

    def get_provider_name(self) -> str:
        return self._kind
