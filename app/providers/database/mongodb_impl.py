"""
MongoDB Database Provider implementation.

Uses PyMongo's native asyncio client with pool sizing and timeouts
from configuration. The connection is verified with PING at startup,
retrying transient failures.
"""
from __future__ import annotations

from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import AsyncMongoClient
from pymongo.errors import ConfigurationError as MongoConfigurationError
from pymongo.errors import PyMongoError

from ...config import get_logger
from ...exceptions import ProviderInitError
from ...utils import retry_async
from ..configs import DatabaseConfig
from .interface import DatabaseProviderInterface, Document

logger = get_logger("database.mongodb")

DEFAULT_DATABASE = "rtech"


def _object_id(doc_id: str) -> ObjectId | None:
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        return None


def _to_document(raw: dict[str, Any]) -> Document:
    document = dict(raw)
    document["id"] = str(document.pop("_id"))
    return document


class MongoDBDatabaseProvider(DatabaseProviderInterface):
    """Document store backed by MongoDB."""

    def __init__(self, config: DatabaseConfig) -> None:
        super().__init__(config)
        self._client: AsyncMongoClient | None = None
        self._db = None

    async def initialize(self) -> None:
        config = self._config
        try:
            client = AsyncMongoClient(
                config.mongodb_uri,
                maxPoolSize=config.mongodb_pool_size,
                minPoolSize=max(1, config.mongodb_pool_size // 2),
                serverSelectionTimeoutMS=config.mongodb_timeout_ms,
                connectTimeoutMS=config.mongodb_timeout_ms,
                socketTimeoutMS=int(config.call_timeout * 1000),
                retryWrites=True,
                w="majority",
            )
        except (MongoConfigurationError, ValueError) as e:
            raise ProviderInitError("Invalid MONGODB_URI", details=str(e), provider="mongodb") from e

        try:
            await retry_async(
                client.admin.command,
                "ping",
                max_retries=config.max_retries,
                base_delay=config.retry_base_delay,
                max_delay=config.retry_max_delay,
            )
        except PyMongoError as e:
            await client.close()
            raise ProviderInitError("Cannot connect to MongoDB", details=str(e), provider="mongodb") from e

        self._client = client
        self._db = client.get_database(config.mongodb_database or self._default_database(client))
        self._initialized = True
        logger.info("MongoDB connected (database: %s, pool: %d)", self._db.name, config.mongodb_pool_size)

    @staticmethod
    def _default_database(client: AsyncMongoClient) -> str:
        try:
            return client.get_default_database().name
        except MongoConfigurationError:
            return DEFAULT_DATABASE

    async def _insert(self, collection: str, document: Document) -> str:
        result = await self._db[collection].insert_one(dict(document))
        return str(result.inserted_id)

    async def _get(self, collection: str, doc_id: str) -> Document | None:
        oid = _object_id(doc_id)
        if oid is None:
            return None
        raw = await self._db[collection].find_one({"_id": oid})
        return _to_document(raw) if raw else None

    async def _find(self, collection: str, filters: Document, limit: int) -> list[Document]:
        cursor = self._db[collection].find(filters).limit(limit)
        return [_to_document(raw) for raw in await cursor.to_list(length=limit)]

    async def _update(self, collection: str, doc_id: str, fields: Document) -> bool:
        oid = _object_id(doc_id)
        if oid is None:
            return False
        result = await self._db[collection].update_one({"_id": oid}, {"$set": fields})
        return result.matched_count > 0

    async def _delete(self, collection: str, doc_id: str) -> bool:
        oid = _object_id(doc_id)
        if oid is None:
            return False
        result = await self._db[collection].delete_one({"_id": oid})
        return result.deleted_count > 0

    async def _stats(self) -> dict[str, Any]:
        stats = await self._db.command("dbstats")
        return {
            "database": self._db.name,
            "collections": stats.get("collections", 0),
            "documents": stats.get("objects", 0),
            "data_size": stats.get("dataSize", 0),
            "storage_size": stats.get("storageSize", 0),
            "indexes": stats.get("indexes", 0),
        }

    async def health_check(self) -> bool:
        if not self._client:
            return False
        try:
            await self._client.admin.command("ping")
            return True
        except PyMongoError as e:
            logger.warning("MongoDB health check failed: %s", e)
            return False

    def get_provider_name(self) -> str:
        return "mongodb"

    async def close(self) -> None:
        if self._client:
            await self._client.close()
            self._client = None
            self._db = None
            logger.info("MongoDB connection closed")
        await super().close()
