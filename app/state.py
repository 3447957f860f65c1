"""
Application state management using provider-based architecture.

This module builds one provider per family from the resolved
configuration, runs the bootstrapper and holds everything request
handlers need. Nothing here is a module-level global: each FastAPI app
gets its own AppState.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable

from fastapi import Request

from app.config import Settings, get_logger
from app.exceptions import ConfigurationError
from app.providers.base import MisconfiguredProvider, ProviderInterface
from app.providers.cache import create_cache_provider
from app.providers.configs import (
    ProviderConfigs,
    cache_config,
    database_config,
    email_config,
    storage_config,
)
from app.providers.database import create_database_provider
from app.providers.email import create_email_provider
from app.providers.storage import create_storage_provider
from app.services.bootstrap import Bootstrapper, InitReport, NamedProvider
from app.services.health import HealthChecker
from app.services.metrics import MetricsCollector

logger = get_logger("state")


@dataclass
class AppState:
    """
    Central container for shared application resources.

    Providers are reachable whether or not they initialized; callers check
    is_available() (or use the require_* dependencies) before using one.
    """
    settings: Settings
    database: ProviderInterface
    cache: ProviderInterface
    email: ProviderInterface
    storage: ProviderInterface
    health_checker: HealthChecker
    metrics: MetricsCollector
    init_report: InitReport
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    async def create(
        cls,
        settings: Settings,
        metrics: MetricsCollector,
        configs: ProviderConfigs | None = None,
    ) -> "AppState":
        """
        Create providers and initialize them.

        Returns:
            Initialized AppState instance (providers may be unavailable)

        Raises:
            ConfigurationError: If a provider listed in STRICT_PROVIDERS failed
        """
        if configs is None:
            providers = _providers_from_settings(settings)
        else:
            providers = {
                "database": create_database_provider(configs.database),
                "cache": create_cache_provider(configs.cache),
                "email": create_email_provider(configs.email),
                "storage": create_storage_provider(configs.storage),
            }
        return await cls.from_providers(settings, metrics, providers)

    @classmethod
    async def from_providers(
        cls,
        settings: Settings,
        metrics: MetricsCollector,
        providers: dict[str, ProviderInterface],
    ) -> "AppState":
        """Bootstrap an explicit set of providers keyed by family name."""
        health_checker = HealthChecker(
            probe_timeout=settings.HEALTH_PROBE_TIMEOUT_SECONDS,
            interval=settings.HEALTH_CHECK_INTERVAL_SECONDS,
        )
        bootstrapper = Bootstrapper(
            health_checker,
            init_timeout=settings.PROVIDER_INIT_TIMEOUT_SECONDS,
            strict_providers=settings.STRICT_PROVIDERS_SET,
        )
        critical = settings.CRITICAL_PROVIDERS_SET

        try:
            report = await bootstrapper.initialize_all([
                NamedProvider(name, provider, critical=name in critical)
                for name, provider in providers.items()
            ])
        except ConfigurationError:
            for provider in providers.values():
                await _close_quietly(provider)
            raise

        return cls(
            settings=settings,
            database=providers["database"],
            cache=providers["cache"],
            email=providers["email"],
            storage=providers["storage"],
            health_checker=health_checker,
            metrics=metrics,
            init_report=report,
        )

    @property
    def providers(self) -> dict[str, ProviderInterface]:
        return {
            "database": self.database,
            "cache": self.cache,
            "email": self.email,
            "storage": self.storage,
        }

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at

    def is_ready(self) -> bool:
        """Ready when every critical provider is available."""
        critical = self.settings.CRITICAL_PROVIDERS_SET
        return all(
            provider.is_available()
            for name, provider in self.providers.items()
            if name in critical
        )

    async def close(self) -> None:
        """Stop health sweeps and release provider connections."""
        await self.health_checker.stop()
        for provider in self.providers.values():
            await _close_quietly(provider)


_FAMILIES: dict[str, tuple[Callable[[Settings], Any], Callable[[Any], ProviderInterface], str]] = {
    "database": (database_config, create_database_provider, "DATABASE_PROVIDER"),
    "cache": (cache_config, create_cache_provider, "CACHE_PROVIDER"),
    "email": (email_config, create_email_provider, "EMAIL_PROVIDER"),
    "storage": (storage_config, create_storage_provider, "STORAGE_PROVIDER"),
}


def _providers_from_settings(settings: Settings) -> dict[str, ProviderInterface]:
    """
    Build one provider per family.

    A family whose settings fail to parse gets a MisconfiguredProvider, so it
    fails initialization on its own while the others start normally.
    """
    providers: dict[str, ProviderInterface] = {}
    for family, (build_config, create_provider, kind_setting) in _FAMILIES.items():
        try:
            config = build_config(settings)
        except ConfigurationError as e:
            logger.error("Invalid %s configuration: %s", family, e.message)
            providers[family] = MisconfiguredProvider(family, getattr(settings, kind_setting), e.message)
            continue
        providers[family] = create_provider(config)
    return providers


async def _close_quietly(provider: ProviderInterface) -> None:
    try:
        await provider.close()
    except Exception as e:
        logger.error("Error closing %s provider: %s", provider.family, e)


def get_app_state(request: Request) -> AppState:
    """FastAPI dependency to get application state."""
    if not hasattr(request.app.state, "app_state"):
        raise RuntimeError("Application state not initialized")
    return request.app.state.app_state
