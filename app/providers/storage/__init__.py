"""
Storage Provider - Factory module for file storage.

Selects the appropriate storage implementation based on configuration.
"""
from __future__ import annotations

from ...config import get_logger
from ..base import MisconfiguredProvider, ProviderInterface
from ..configs import StorageConfig
from .interface import (
    FILE_POLICIES,
    ContentKind,
    FilePolicy,
    StorageEntry,
    StorageProviderInterface,
    UploadDescriptor,
    UploadResult,
    parse_content_kind,
)

logger = get_logger("storage.provider")

SUPPORTED_PROVIDERS = ("s3", "gcs", "local")


def create_storage_provider(config: StorageConfig) -> ProviderInterface:
    """Build the storage provider selected by ``config.kind``."""
    if config.kind == "s3":
        from .s3_impl import S3StorageProvider
        provider: ProviderInterface = S3StorageProvider(config)
    elif config.kind == "gcs":
        from .gcs_impl import GCSStorageProvider
        provider = GCSStorageProvider(config)
    elif config.kind == "local":
        from .local_impl import LocalStorageProvider
        provider = LocalStorageProvider(config)
    else:
        logger.error(
            "Unknown storage provider: %s. Supported: %s",
            config.kind, ", ".join(SUPPORTED_PROVIDERS),
        )
        return MisconfiguredProvider(
            "storage",
            config.kind,
            f"Unknown storage provider: {config.kind}. Supported: {', '.join(SUPPORTED_PROVIDERS)}",
        )

    logger.info("Storage Provider: %s", config.kind)
    return provider


__all__ = [
    "FILE_POLICIES",
    "ContentKind",
    "FilePolicy",
    "StorageEntry",
    "StorageProviderInterface",
    "UploadDescriptor",
    "UploadResult",
    "create_storage_provider",
    "parse_content_kind",
]
