"""
Database Provider - Factory module for the persistent store.

Selects the appropriate database implementation based on configuration.
"""
from __future__ import annotations

from ...config import get_logger
from ..base import MisconfiguredProvider, ProviderInterface
from ..configs import DatabaseConfig
from .interface import DatabaseProviderInterface, Document

logger = get_logger("database.provider")

SUPPORTED_PROVIDERS = ("mongodb", "firestore", "memory")


def create_database_provider(config: DatabaseConfig) -> ProviderInterface:
    """Build the database provider selected by ``config.kind``."""
    if config.kind == "mongodb":
        from .mongodb_impl import MongoDBDatabaseProvider
        provider: ProviderInterface = MongoDBDatabaseProvider(config)
    elif config.kind == "firestore":
        from .firestore_impl import FirestoreDatabaseProvider
        provider = FirestoreDatabaseProvider(config)
    elif config.kind == "memory":
        from .memory_impl import MemoryDatabaseProvider
        provider = MemoryDatabaseProvider(config)
    else:
        logger.error(
            "Unknown database provider: %s. Supported: %s",
            config.kind, ", ".join(SUPPORTED_PROVIDERS),
        )
        return MisconfiguredProvider(
            "database",
            config.kind,
            f"Unknown database provider: {config.kind}. Supported: {', '.join(SUPPORTED_PROVIDERS)}",
        )

    logger.info("Database Provider: %s", config.kind)
    return provider


__all__ = ["DatabaseProviderInterface", "Document", "create_database_provider"]
