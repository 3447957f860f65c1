"""
Error tracking backed by Sentry.

Tracking is optional: without SENTRY_DSN, or when the SDK refuses the DSN,
every capture call is a no-op and the application runs normally.
"""
from __future__ import annotations

from typing import Any

import sentry_sdk

from app.config import Settings, get_logger

logger = get_logger("error_tracking")


class ErrorTracker:
    """Forwards unexpected errors and notable events to Sentry when configured."""

    def __init__(
        self,
        dsn: str | None,
        environment: str = "development",
        traces_sample_rate: float = 0.1,
        release: str | None = None,
    ) -> None:
        self._dsn = dsn
        self._environment = environment
        self._traces_sample_rate = traces_sample_rate
        self._release = release
        self._enabled = False

    @classmethod
    def from_settings(cls, settings: Settings) -> "ErrorTracker":
        return cls(
            dsn=settings.SENTRY_DSN,
            environment=settings.SENTRY_ENVIRONMENT,
            traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            release=settings.APP_VERSION,
        )

    @property
    def enabled(self) -> bool:
        return self._enabled

    def initialize(self) -> bool:
        """
        Start the Sentry client.

        Returns:
            True when events will be sent, False when tracking stays disabled
        """
        if not self._dsn:
            logger.info("Sentry DSN not configured, error tracking disabled")
            return False

        try:
            sentry_sdk.init(
                dsn=self._dsn,
                environment=self._environment,
                release=self._release,
                traces_sample_rate=self._traces_sample_rate,
                send_default_pii=False,
            )
        except Exception as e:
            logger.error("Failed to initialize error tracking: %s", e)
            return False

        self._enabled = True
        logger.info("Error tracking initialized (Sentry) | environment=%s", self._environment)
        return True

    def capture_exception(self, exc: BaseException, **context: Any) -> None:
        if self._enabled:
            sentry_sdk.capture_exception(exc, contexts={"custom": context})

    def capture_message(self, message: str, level: str = "info") -> None:
        if self._enabled:
            sentry_sdk.capture_message(message, level=level)
