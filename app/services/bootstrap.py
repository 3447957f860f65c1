"""
Provider bootstrapping.

Initializes every configured provider once, in declared order, each under
its own timeout. A failing provider is recorded in the InitReport and the
loop moves on; only providers that came up are registered as health
probes. Startup aborts only for providers named in STRICT_PROVIDERS.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import asdict, dataclass
from typing import Any, Iterator, Sequence

from app.config import get_logger
from app.exceptions import BackendException, ConfigurationError
from app.providers.base import ProviderInterface
from app.services.health import HealthChecker

logger = get_logger("services.bootstrap")


@dataclass(frozen=True)
class NamedProvider:
    name: str
    provider: ProviderInterface
    critical: bool = False


@dataclass(frozen=True)
class InitResult:
    name: str
    family: str
    provider_name: str
    attempted: bool
    succeeded: bool
    error: str | None = None
    duration_ms: float = 0.0


@dataclass(frozen=True)
class InitReport:
    """Per-provider outcome of initialize_all(), in declared order."""
    results: tuple[InitResult, ...]

    def __len__(self) -> int:
        return len(self.results)

    def __iter__(self) -> Iterator[InitResult]:
        return iter(self.results)

    def get(self, name: str) -> InitResult | None:
        return next((result for result in self.results if result.name == name), None)

    @property
    def succeeded(self) -> list[InitResult]:
        return [result for result in self.results if result.succeeded]

    @property
    def failed(self) -> list[InitResult]:
        return [result for result in self.results if not result.succeeded]

    def to_dict(self) -> list[dict[str, Any]]:
        return [asdict(result) for result in self.results]


class Bootstrapper:
    """Runs provider initialization and wires successes into health checks."""

    def __init__(
        self,
        health_checker: HealthChecker,
        *,
        init_timeout: float = 10.0,
        strict_providers: frozenset[str] = frozenset(),
    ) -> None:
        self._health_checker = health_checker
        self._init_timeout = init_timeout
        self._strict = strict_providers
        self._report: InitReport | None = None

    @property
    def report(self) -> InitReport | None:
        return self._report

    async def initialize_all(self, providers: Sequence[NamedProvider]) -> InitReport:
        """
        Initialize providers sequentially and return the report.

        Raises:
            ConfigurationError: Duplicate names/families, or a provider listed
                as strict failed to initialize
            RuntimeError: Called more than once
        """
        if self._report is not None:
            raise RuntimeError("Providers have already been initialized")
        self._check_unique(providers)

        results: list[InitResult] = []
        for entry in providers:
            results.append(await self._initialize_one(entry))
        self._report = InitReport(results=tuple(results))

        for entry, result in zip(providers, self._report):
            if result.succeeded:
                self._health_checker.register_check(
                    entry.name,
                    entry.provider.health_check,
                    critical=entry.critical,
                )

        logger.info(
            "Provider bootstrap finished | ok=%d | failed=%d | %s",
            len(self._report.succeeded),
            len(self._report.failed),
            " | ".join(
                f"{result.name}={result.provider_name}:{'OK' if result.succeeded else 'UNAVAILABLE'}"
                for result in self._report
            ),
        )

        strict_failures = [result for result in self._report.failed if result.name in self._strict]
        if strict_failures:
            names = ", ".join(result.name for result in strict_failures)
            raise ConfigurationError(
                f"Required providers failed to initialize: {names}",
                details="; ".join(f"{result.name}: {result.error}" for result in strict_failures),
            )
        return self._report

    @staticmethod
    def _check_unique(providers: Sequence[NamedProvider]) -> None:
        names = [entry.name for entry in providers]
        families = [entry.provider.family for entry in providers]
        if len(set(names)) != len(names):
            raise ConfigurationError(f"Duplicate provider names: {names}")
        if len(set(families)) != len(families):
            raise ConfigurationError(f"More than one provider per family: {families}")

    async def _initialize_one(self, entry: NamedProvider) -> InitResult:
        provider = entry.provider
        start = time.perf_counter()
        error: str | None = None
        try:
            await asyncio.wait_for(provider.initialize(), timeout=self._init_timeout)
        except asyncio.TimeoutError:
            error = f"initialization timed out after {self._init_timeout:.1f}s"
        except BackendException as e:
            error = f"{e.message}: {e.details}" if e.details else e.message
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.debug("Unexpected initialization error for %s", entry.name, exc_info=True)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        if error is None:
            logger.info(
                "Provider initialized | name=%s | provider=%s | duration_ms=%.1f",
                entry.name, provider.get_provider_name(), duration_ms,
            )
        else:
            logger.warning(
                "Provider unavailable | name=%s | provider=%s | duration_ms=%.1f | error=%s",
                entry.name, provider.get_provider_name(), duration_ms, error,
            )
        return InitResult(
            name=entry.name,
            family=provider.family,
            provider_name=provider.get_provider_name(),
            attempted=True,
            succeeded=error is None,
            error=error,
            duration_ms=duration_ms,
        )
