"""
Centralized configuration using Pydantic BaseSettings.

This module follows the same rules for every backing service:
- Pydantic BaseSettings for type-safe environment variable loading
- Provider selectors are plain strings so an unknown value degrades a
  single feature instead of aborting startup
- Numeric and boolean provider settings are raw strings parsed per family,
  so a malformed value fails only the provider that reads it
- Per-family provider configuration is resolved once into immutable
  objects (see app.providers.configs)
- Environment file support (.env)

Configuration Philosophy:
    - .env: Only sensitive data (API keys, credentials, connection strings)
    - config.py: All application settings with sensible defaults

Usage:
    from app.config import settings, get_logger

    print(settings.STORAGE_PROVIDER)  # Type-safe access
"""
from __future__ import annotations

import logging
import re
from functools import cached_property, lru_cache
from typing import ClassVar, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    Nothing here is required: a backend with no credentials at all still
    boots, serving health and metrics while the affected features report
    themselves unavailable.

    Configuration Sources:
        1. Environment variables
        2. .env file (if present)
        3. Default values (defined below)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra environment variables
        validate_default=True,
        coerce_numbers_to_str=True,
    )

    # =========================================================================
    # Server Configuration
    # =========================================================================

    HOST: str = Field(
        default="0.0.0.0",
        description="Server host (0.0.0.0 for external access, 127.0.0.1 for local only)",
    )
    PORT: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Server port number",
    )
    DEBUG: bool = Field(
        default=False,
        description="Debug mode - enables auto reload (NEVER use in production)",
    )
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    APP_VERSION: str = Field(
        default="1.0.0",
        description="Version reported by the API and health endpoints",
    )

    # =========================================================================
    # Provider Lifecycle
    # =========================================================================
    # Every backing service is initialized independently at startup.

    PROVIDER_INIT_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        gt=0,
        description="Maximum time a single provider may spend initializing",
    )
    PROVIDER_CALL_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        gt=0,
        description="Default timeout applied to every provider I/O call",
    )
    STRICT_PROVIDERS: str = Field(
        default="",
        description="Comma-separated providers whose init failure aborts startup (empty = fail-soft)",
    )
    CRITICAL_PROVIDERS: str = Field(
        default="database",
        description="Comma-separated providers whose outage makes /health return 503",
    )

    # =========================================================================
    # Health & Metrics
    # =========================================================================

    HEALTH_CHECK_INTERVAL_SECONDS: float = Field(
        default=60.0,
        gt=0,
        description="Interval between periodic health sweeps",
    )
    HEALTH_PROBE_TIMEOUT_SECONDS: float = Field(
        default=5.0,
        gt=0,
        description="Maximum time a single health probe may take",
    )
    METRICS_WINDOW_SIZE: int = Field(
        default=10_000,
        ge=1,
        description="Number of most recent request durations kept for percentiles",
    )

    # =========================================================================
    # Storage Provider Configuration
    # =========================================================================

    STORAGE_PROVIDER: str = Field(
        default="local",
        description="Active storage provider (s3, gcs, local)",
    )
    MAX_FILE_SIZE: str = Field(
        default="52428800",
        description="Global upload ceiling in bytes (per-kind limits still apply)",
    )
    CDN_URL: str | None = Field(
        default=None,
        description="Public base URL placed in front of stored objects",
    )
    LOCAL_UPLOAD_DIR: str = Field(
        default="./uploads",
        description="Root directory for the local storage provider",
    )
    AWS_ACCESS_KEY_ID: str | None = Field(default=None, description="AWS access key")
    AWS_SECRET_ACCESS_KEY: str | None = Field(default=None, description="AWS secret key")
    AWS_S3_BUCKET: str | None = Field(default=None, description="S3 bucket name")
    AWS_S3_REGION: str = Field(default="us-east-1", description="S3 bucket region")
    AWS_S3_ENDPOINT_URL: str | None = Field(
        default=None,
        description="Custom S3-compatible endpoint (MinIO, R2, ...)",
    )
    AWS_S3_ACL: str | None = Field(
        default=None,
        description="Canned ACL applied to uploaded objects (e.g. public-read)",
    )
    GCS_PROJECT_ID: str | None = Field(default=None, description="Google Cloud project ID")
    GCS_BUCKET: str | None = Field(default=None, description="Cloud Storage bucket name")
    GCS_KEY_FILE: str | None = Field(
        default=None,
        description="Path to a service account JSON key file",
    )
    GCS_CREDS_BASE64: str | None = Field(
        default=None,
        description="Base64-encoded service account JSON (alternative to GCS_KEY_FILE)",
    )

    # =========================================================================
    # Email Provider Configuration
    # =========================================================================

    EMAIL_PROVIDER: str = Field(
        default="sendgrid",
        description="Active email provider (sendgrid, ses, smtp)",
    )
    EMAIL_FROM: str = Field(
        default="noreply@rtechsolutions.com",
        description="Sender address for outgoing mail",
    )
    EMAIL_FROM_NAME: str = Field(
        default="RTech Solutions",
        description="Sender display name, also used as brand in templates",
    )
    EMAIL_SITE_URL: str = Field(
        default="https://www.rtechsolutions.com",
        description="Public site URL linked from email templates",
    )
    EMAIL_SUPPORT_ADDRESS: str = Field(
        default="support@rtechsolutions.com",
        description="Support address shown in email footers",
    )
    SENDGRID_API_KEY: str | None = Field(default=None, description="SendGrid API key")
    AWS_SES_REGION: str = Field(default="us-east-1", description="SES region")
    SMTP_HOST: str | None = Field(default=None, description="SMTP server host")
    SMTP_PORT: str = Field(default="587", description="SMTP server port")
    SMTP_USER: str | None = Field(default=None, description="SMTP username")
    SMTP_PASSWORD: str | None = Field(default=None, description="SMTP password")
    SMTP_STARTTLS: str = Field(default="true", description="Upgrade SMTP connection with STARTTLS")
    EMAIL_SEND_TIMEOUT_SECONDS: str = Field(
        default="15",
        description="Maximum time to wait for a single email send",
    )
    EMAIL_BATCH_MAX_RETRIES: str = Field(
        default="2",
        description="Retries per recipient for retryable failures in a batch",
    )

    # =========================================================================
    # Cache Provider Configuration
    # =========================================================================

    CACHE_PROVIDER: str = Field(
        default="redis",
        description="Active cache provider (redis, memory)",
    )
    REDIS_HOST: str = Field(default="localhost", description="Redis host")
    REDIS_PORT: str = Field(default="6379", description="Redis port")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password")
    REDIS_DB: str = Field(default="0", description="Redis database index")
    CACHE_TTL: str = Field(default="3600", description="Default cache entry TTL in seconds")
    CACHE_KEY_PREFIX: str = Field(default="app:", description="Namespace prepended to cache keys")
    UPLOAD_LIST_CACHE_TTL: int = Field(
        default=30,
        ge=0,
        description="Seconds a storage listing is served from the cache (0 disables)",
    )

    # =========================================================================
    # Database Provider Configuration
    # =========================================================================

    DATABASE_PROVIDER: str = Field(
        default="memory",
        description="Active database provider (mongodb, firestore, memory)",
    )
    MONGODB_URI: str = Field(
        default="mongodb://localhost:27017/rtech",
        description="MongoDB connection string",
    )
    MONGODB_DATABASE: str | None = Field(
        default=None,
        description="Database name (defaults to the one in MONGODB_URI)",
    )
    MONGODB_POOL_SIZE: str = Field(default="10", description="Maximum connection pool size")
    MONGODB_TIMEOUT_MS: str = Field(
        default="5000",
        description="Server selection / connect timeout in milliseconds",
    )
    FIREBASE_CREDS_BASE64: str | None = Field(
        default=None,
        description="Base64-encoded Firebase service account JSON (alternative to GOOGLE_APPLICATION_CREDENTIALS)",
    )

    # =========================================================================
    # Retry Configuration
    # =========================================================================
    # Exponential backoff for transient failures (network issues, rate limits, etc.)

    MAX_RETRIES: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum retry attempts for provider initialization",
    )
    RETRY_BASE_DELAY: float = Field(
        default=0.5,
        ge=0,
        description="Initial delay between retries in seconds (grows exponentially)",
    )
    RETRY_MAX_DELAY: float = Field(
        default=10.0,
        ge=0,
        description="Maximum delay between retries (caps exponential growth)",
    )

    # =========================================================================
    # Rate Limiting
    # =========================================================================

    RATE_LIMIT_UPLOAD: str = Field(
        default="100/minute",
        pattern=r"^\d+/(second|minute|hour|day)$",
        description="Rate limit for upload endpoints (format: 'count/period')",
    )

    # =========================================================================
    # CORS Configuration
    # =========================================================================

    CORS_ORIGINS: str = Field(
        default="*",
        description="Comma-separated allowed origins ('*' for all, restrict in production)",
    )

    # =========================================================================
    # Error Tracking (Sentry)
    # =========================================================================

    SENTRY_DSN: str | None = Field(
        default=None,
        description="Sentry DSN (error tracking is disabled when unset)",
    )
    SENTRY_ENVIRONMENT: str = Field(default="development", description="Sentry environment tag")
    SENTRY_TRACES_SAMPLE_RATE: float = Field(
        default=0.1,
        ge=0,
        le=1,
        description="Fraction of requests sent to Sentry as performance traces",
    )

    # =========================================================================
    # Validators
    # =========================================================================

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str) -> str:
        """Ensure LOG_LEVEL is uppercase."""
        return v.upper() if isinstance(v, str) else v

    @field_validator(
        "STORAGE_PROVIDER", "EMAIL_PROVIDER", "CACHE_PROVIDER", "DATABASE_PROVIDER",
        mode="before",
    )
    @classmethod
    def lowercase_provider(cls, v: str) -> str:
        """Ensure provider names are lowercase."""
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("CDN_URL", "AWS_S3_ENDPOINT_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        return v.rstrip("/") if v else v

    # =========================================================================
    # Computed Properties
    # =========================================================================

    @cached_property
    def CORS_ORIGINS_LIST(self) -> list[str]:
        """Get list of CORS origins."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @cached_property
    def STRICT_PROVIDERS_SET(self) -> frozenset[str]:
        """Providers that must initialize for the process to start."""
        return _csv_set(self.STRICT_PROVIDERS)

    @cached_property
    def CRITICAL_PROVIDERS_SET(self) -> frozenset[str]:
        """Providers whose probe failure marks the service unavailable."""
        return _csv_set(self.CRITICAL_PROVIDERS)


def _csv_set(value: str) -> frozenset[str]:
    return frozenset(item.strip().lower() for item in value.split(",") if item.strip())


# =============================================================================
# Settings Factory with Caching
# =============================================================================

@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache for singleton behavior while allowing
    cache invalidation in tests.
    """
    return Settings()


# Convenience alias for direct access
settings = get_settings()


# =============================================================================
# Logging Configuration
# =============================================================================

class SanitizingFormatter(logging.Formatter):
    """
    Logging formatter that redacts sensitive information.

    Automatically redacts:
    - Bearer tokens
    - API keys (including SendGrid "SG." keys)
    - Tokens, passwords, secrets
    - Credentials embedded in connection URLs
    """

    SENSITIVE_PATTERNS: ClassVar[list[tuple[re.Pattern[str], str]]] = [
        (re.compile(r'(Bearer\s+)[^\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(api[_-]?key["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(token["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(password["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'(secret[_a-z]*["\']?\s*[:=]\s*["\']?)[^"\'\s]+', re.I), r'\1[REDACTED]'),
        (re.compile(r'\bSG\.[\w\-]+\.[\w\-]+'), '[REDACTED]'),
        (re.compile(r'(://[^:/\s@]*:)[^@\s]+(@)'), r'\1[REDACTED]\2'),
    ]

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with sensitive data redaction."""
        message = super().format(record)
        for pattern, replacement in self.SENSITIVE_PATTERNS:
            message = pattern.sub(replacement, message)
        return message


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure application logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    handler = logging.StreamHandler()
    handler.setFormatter(SanitizingFormatter(log_format))

    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        handlers=[handler],
        force=True,  # Override any existing configuration
    )

    # Suppress noisy third-party loggers
    for logger_name in (
        "httpx", "httpcore", "google", "urllib3", "grpc",
        "botocore", "aiobotocore", "aioboto3", "s3transfer",
        "pymongo", "aiosmtplib",
    ):
        logging.getLogger(logger_name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured logging.Logger instance
    """
    return logging.getLogger(name)


# Initialize logging on module load
configure_logging(settings.LOG_LEVEL)
