"""
Immutable per-family provider configuration.

Settings are read once at startup and frozen into these objects; providers
only ever see their own family's configuration.
"""
from __future__ import annotations

from dataclasses import dataclass

from app.config import Settings
from app.exceptions import ConfigurationError


@dataclass(frozen=True)
class StorageConfig:
    kind: str
    max_file_size: int
    call_timeout: float
    cdn_url: str | None = None
    local_upload_dir: str = "./uploads"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    s3_bucket: str | None = None
    s3_region: str = "us-east-1"
    s3_endpoint_url: str | None = None
    s3_acl: str | None = None
    gcs_project_id: str | None = None
    gcs_bucket: str | None = None
    gcs_key_file: str | None = None
    gcs_creds_base64: str | None = None


@dataclass(frozen=True)
class EmailConfig:
    kind: str
    from_address: str
    from_name: str
    send_timeout: float
    site_url: str = ""
    support_address: str = ""
    sendgrid_api_key: str | None = None
    ses_region: str = "us-east-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_starttls: bool = True
    batch_max_retries: int = 2
    retry_base_delay: float = 0.5
    retry_max_delay: float = 10.0


@dataclass(frozen=True)
class CacheConfig:
    kind: str
    call_timeout: float
    default_ttl: int = 3600
    key_prefix: str = ""
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str | None = None
    redis_db: int = 0


@dataclass(frozen=True)
class DatabaseConfig:
    kind: str
    call_timeout: float
    mongodb_uri: str = "mongodb://localhost:27017/rtech"
    mongodb_database: str | None = None
    mongodb_pool_size: int = 10
    mongodb_timeout_ms: int = 5000
    firebase_creds_base64: str | None = None
    max_retries: int = 3
    retry_base_delay: float = 0.5
    retry_max_delay: float = 10.0


# -----------------------------------------------------------------------------
# Per-family builders
#
# Numeric and boolean provider settings are kept as raw strings on Settings and
# parsed here, so a bad value only takes down the family that owns it.
# -----------------------------------------------------------------------------

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _raw(settings: Settings, name: str) -> str:
    return str(getattr(settings, name)).strip()


def _int(
    settings: Settings,
    name: str,
    minimum: int | None = None,
    maximum: int | None = None,
) -> int:
    raw = _raw(settings, name)
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid {name}: {raw!r} is not an integer") from None
    if minimum is not None and value < minimum:
        raise ConfigurationError(f"Invalid {name}: {value} is below {minimum}")
    if maximum is not None and value > maximum:
        raise ConfigurationError(f"Invalid {name}: {value} is above {maximum}")
    return value


def _float(settings: Settings, name: str) -> float:
    raw = _raw(settings, name)
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(f"Invalid {name}: {raw!r} is not a number") from None
    if not value > 0:
        raise ConfigurationError(f"Invalid {name}: {raw!r} must be positive")
    return value


def _bool(settings: Settings, name: str) -> bool:
    raw = _raw(settings, name).lower()
    if raw in _TRUE:
        return True
    if raw in _FALSE:
        return False
    raise ConfigurationError(f"Invalid {name}: {raw!r} is not a boolean")


def storage_config(settings: Settings) -> StorageConfig:
    return StorageConfig(
        kind=settings.STORAGE_PROVIDER,
        max_file_size=_int(settings, "MAX_FILE_SIZE", minimum=1),
        call_timeout=settings.PROVIDER_CALL_TIMEOUT_SECONDS,
        cdn_url=settings.CDN_URL,
        local_upload_dir=settings.LOCAL_UPLOAD_DIR,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        s3_bucket=settings.AWS_S3_BUCKET,
        s3_region=settings.AWS_S3_REGION,
        s3_endpoint_url=settings.AWS_S3_ENDPOINT_URL,
        s3_acl=settings.AWS_S3_ACL,
        gcs_project_id=settings.GCS_PROJECT_ID,
        gcs_bucket=settings.GCS_BUCKET,
        gcs_key_file=settings.GCS_KEY_FILE,
        gcs_creds_base64=settings.GCS_CREDS_BASE64,
    )


def email_config(settings: Settings) -> EmailConfig:
    return EmailConfig(
        kind=settings.EMAIL_PROVIDER,
        from_address=settings.EMAIL_FROM,
        from_name=settings.EMAIL_FROM_NAME,
        send_timeout=_float(settings, "EMAIL_SEND_TIMEOUT_SECONDS"),
        site_url=settings.EMAIL_SITE_URL,
        support_address=settings.EMAIL_SUPPORT_ADDRESS,
        sendgrid_api_key=settings.SENDGRID_API_KEY,
        ses_region=settings.AWS_SES_REGION,
        aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
        aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        smtp_host=settings.SMTP_HOST,
        smtp_port=_int(settings, "SMTP_PORT", minimum=1, maximum=65535),
        smtp_user=settings.SMTP_USER,
        smtp_password=settings.SMTP_PASSWORD,
        smtp_starttls=_bool(settings, "SMTP_STARTTLS"),
        batch_max_retries=_int(settings, "EMAIL_BATCH_MAX_RETRIES", minimum=0, maximum=10),
        retry_base_delay=settings.RETRY_BASE_DELAY,
        retry_max_delay=settings.RETRY_MAX_DELAY,
    )


def cache_config(settings: Settings) -> CacheConfig:
    return CacheConfig(
        kind=settings.CACHE_PROVIDER,
        call_timeout=settings.PROVIDER_CALL_TIMEOUT_SECONDS,
        default_ttl=_int(settings, "CACHE_TTL", minimum=1),
        key_prefix=settings.CACHE_KEY_PREFIX,
        redis_host=settings.REDIS_HOST,
        redis_port=_int(settings, "REDIS_PORT", minimum=1, maximum=65535),
        redis_password=settings.REDIS_PASSWORD,
        redis_db=_int(settings, "REDIS_DB", minimum=0),
    )


def database_config(settings: Settings) -> DatabaseConfig:
    return DatabaseConfig(
        kind=settings.DATABASE_PROVIDER,
        call_timeout=settings.PROVIDER_CALL_TIMEOUT_SECONDS,
        mongodb_uri=settings.MONGODB_URI,
        mongodb_database=settings.MONGODB_DATABASE,
        mongodb_pool_size=_int(settings, "MONGODB_POOL_SIZE", minimum=1),
        mongodb_timeout_ms=_int(settings, "MONGODB_TIMEOUT_MS", minimum=1),
        firebase_creds_base64=settings.FIREBASE_CREDS_BASE64,
        max_retries=settings.MAX_RETRIES,
        retry_base_delay=settings.RETRY_BASE_DELAY,
        retry_max_delay=settings.RETRY_MAX_DELAY,
    )


@dataclass(frozen=True)
class ProviderConfigs:
    """All provider configuration, resolved once from Settings."""

    storage: StorageConfig
    email: EmailConfig
    cache: CacheConfig
    database: DatabaseConfig

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderConfigs":
        """
        Resolve every family at once.

        Raises:
            ConfigurationError: If any family's settings are invalid
        """
        return cls(
            storage=storage_config(settings),
            email=email_config(settings),
            cache=cache_config(settings),
            database=database_config(settings),
        )
