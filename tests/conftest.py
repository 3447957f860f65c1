"""
Shared fixtures for the test suite.

Every app built here uses local storage under tmp_path plus the in-memory
cache and database, so no test needs a network connection. Email is SMTP
without a host, which fails initialization on purpose.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.config import Settings
from app.main import create_app
from app.providers.base import ProviderInterface
from app.providers.configs import (
    CacheConfig,
    DatabaseConfig,
    EmailConfig,
    StorageConfig,
)
from app.providers.email import EmailMessage, EmailProviderInterface
from app.providers.storage import StorageEntry, StorageProviderInterface

# ---------------------------------------------------------------------------
# Settings / app
# ---------------------------------------------------------------------------


def make_settings(tmp_path: Path, **overrides: object) -> Settings:
    """Settings for an app that boots without any external service."""
    values: dict[str, object] = {
        "STORAGE_PROVIDER": "local",
        "LOCAL_UPLOAD_DIR": str(tmp_path / "uploads"),
        "CACHE_PROVIDER": "memory",
        "DATABASE_PROVIDER": "memory",
        "EMAIL_PROVIDER": "smtp",
        "SMTP_HOST": None,
        "SMTP_USER": None,
        "HEALTH_CHECK_INTERVAL_SECONDS": 3600,
        "HEALTH_PROBE_TIMEOUT_SECONDS": 1,
        "PROVIDER_INIT_TIMEOUT_SECONDS": 2,
        "STRICT_PROVIDERS": "",
        "CRITICAL_PROVIDERS": "database",
        "CDN_URL": None,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
def client(settings: Settings):
    """TestClient with the lifespan (provider bootstrap) running."""
    app = create_app(settings)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


# ---------------------------------------------------------------------------
# Provider configs
# ---------------------------------------------------------------------------


def make_storage_config(tmp_path: Path | None = None, **overrides: object) -> StorageConfig:
    values: dict[str, object] = {
        "kind": "local",
        "max_file_size": 50 * 1024 * 1024,
        "call_timeout": 5.0,
        "local_upload_dir": str(tmp_path / "uploads") if tmp_path else "./uploads",
    }
    values.update(overrides)
    return StorageConfig(**values)


def make_email_config(**overrides: object) -> EmailConfig:
    values: dict[str, object] = {
        "kind": "smtp",
        "from_address": "noreply@rtechsolutions.in",
        "from_name": "RTech Solutions",
        "send_timeout": 5.0,
        "batch_max_retries": 2,
        "retry_base_delay": 0.0,
        "retry_max_delay": 0.0,
    }
    values.update(overrides)
    return EmailConfig(**values)


def make_cache_config(**overrides: object) -> CacheConfig:
    values: dict[str, object] = {"kind": "memory", "call_timeout": 5.0, "key_prefix": "test:"}
    values.update(overrides)
    return CacheConfig(**values)


def make_database_config(**overrides: object) -> DatabaseConfig:
    values: dict[str, object] = {
        "kind": "memory",
        "call_timeout": 5.0,
        "max_retries": 0,
        "retry_base_delay": 0.0,
        "retry_max_delay": 0.0,
    }
    values.update(overrides)
    return DatabaseConfig(**values)


# ---------------------------------------------------------------------------
# Fake providers
# ---------------------------------------------------------------------------


class FakeProvider(ProviderInterface):
    """Provider whose initialize/health behaviour is scripted."""

    def __init__(
        self,
        name: str = "fake",
        family: str = "fake",
        *,
        init_error: Exception | None = None,
        init_delay: float = 0.0,
        healthy: bool = True,
    ) -> None:
        super().__init__()
        self.family = family
        self._name = name
        self._init_error = init_error
        self._init_delay = init_delay
        self.healthy = healthy
        self.init_calls = 0
        self.closed = False

    async def initialize(self) -> None:
        self.init_calls += 1
        if self._init_delay:
            await asyncio.sleep(self._init_delay)
        if self._init_error is not None:
            raise self._init_error
        self._initialized = True

    async def health_check(self) -> bool:
        return self.healthy

    def get_provider_name(self) -> str:
        return self._name

    async def close(self) -> None:
        self.closed = True
        await super().close()


class RecordingEmailProvider(EmailProviderInterface):
    """Email provider that records deliveries; failures scripted per recipient."""

    def __init__(self, config: EmailConfig | None = None, failures: dict | None = None) -> None:
        super().__init__(config or make_email_config())
        # recipient -> list of exceptions raised on successive attempts
        self.failures: dict[str, list[Exception]] = failures or {}
        self.delivered: list[EmailMessage] = []
        self.attempts: dict[str, int] = {}

    async def initialize(self) -> None:
        self._initialized = True

    async def _deliver(self, message: EmailMessage) -> str | None:
        self.attempts[message.recipient] = self.attempts.get(message.recipient, 0) + 1
        pending = self.failures.get(message.recipient)
        if pending:
            raise pending.pop(0)
        self.delivered.append(message)
        return f"msg-{len(self.delivered)}"

    def get_provider_name(self) -> str:
        return "recording"


class InMemoryStorageProvider(StorageProviderInterface):
    """Storage provider keeping objects in a dict; tracks every raw call."""

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.put_calls = 0

    async def initialize(self) -> None:
        self._initialized = True

    async def _put_object(self, key: str, data: bytes, content_type: str) -> None:
        self.put_calls += 1
        self.objects[key] = (data, content_type)

    async def _delete_object(self, key: str) -> None:
        self.objects.pop(key, None)

    async def _list_objects(self, folder: str) -> list[StorageEntry]:
        return [
            StorageEntry(key=key, size=len(data))
            for key, (data, _) in sorted(self.objects.items())
            if key.startswith(f"{folder}/")
        ]

    def resolve_url(self, key: str) -> str:
        return self._public_url(key) or f"https://files.rtechsolutions.in/{key}"

    def get_provider_name(self) -> str:
        return "inmemory"
