"""
Firestore Database Provider implementation.

Uses Google Cloud Firestore's async client as a document store.
Includes retry logic for transient initialization failures.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from ...config import get_logger
from ...exceptions import ProviderInitError
from ...utils import decode_service_account_info, is_retryable_error
from ..configs import DatabaseConfig
from .interface import DatabaseProviderInterface, Document

logger = get_logger("database.firestore")

HEALTH_CHECK_COLLECTION = "_health"


class FirestoreDatabaseProvider(DatabaseProviderInterface):
    """
    Firestore document store.

    Supports async operations, base64 service account credentials
    and retry logic for transient failures.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        super().__init__(config)
        self._client: Optional[firestore.AsyncClient] = None
        self._credentials = None

    async def initialize(self) -> None:
        """Initialize Firestore connection with retry logic."""
        if self._initialized and self._client:
            return

        config = self._config
        for attempt in range(config.max_retries + 1):
            try:
                if config.firebase_creds_base64:
                    info = decode_service_account_info(config.firebase_creds_base64)
                    self._credentials = service_account.Credentials.from_service_account_info(info)
                    self._client = firestore.AsyncClient(credentials=self._credentials)
                else:
                    # Use default credentials (ADC)
                    self._client = firestore.AsyncClient()

                self._initialized = True
                logger.info("Firestore AsyncClient initialized successfully")
                return

            except Exception as e:
                if is_retryable_error(e) and attempt < config.max_retries:
                    delay = min(
                        config.retry_base_delay * (2 ** attempt),
                        config.retry_max_delay,
                    )
                    logger.warning(
                        "Firestore initialization failed (attempt %d/%d): %s, retrying in %.2fs",
                        attempt + 1,
                        config.max_retries + 1,
                        e,
                        delay,
                    )
                    await asyncio.sleep(delay)
                else:
                    raise ProviderInitError(
                        "Firestore initialization failed",
                        details=str(e),
                        provider="firestore",
                    ) from e

    async def _insert(self, collection: str, document: Document) -> str:
        doc_ref = self._client.collection(collection).document()
        await doc_ref.set(document)
        return doc_ref.id

    async def _get(self, collection: str, doc_id: str) -> Document | None:
        snapshot = await self._client.collection(collection).document(doc_id).get()
        if not snapshot.exists:
            return None
        return {**snapshot.to_dict(), "id": snapshot.id}

    async def _find(self, collection: str, filters: Document, limit: int) -> list[Document]:
        query = self._client.collection(collection)
        for field, value in filters.items():
            query = query.where(filter=FieldFilter(field, "==", value))
        snapshots = await query.limit(limit).get()
        return [{**snapshot.to_dict(), "id": snapshot.id} for snapshot in snapshots]

    async def _update(self, collection: str, doc_id: str, fields: Document) -> bool:
        try:
            await self._client.collection(collection).document(doc_id).update(fields)
        except google_exceptions.NotFound:
            return False
        return True

    async def _delete(self, collection: str, doc_id: str) -> bool:
        doc_ref = self._client.collection(collection).document(doc_id)
        snapshot = await doc_ref.get()
        if not snapshot.exists:
            return False
        await doc_ref.delete()
        return True

    async def _stats(self) -> dict[str, Any]:
        collections = [collection.id async for collection in self._client.collections()]
        return {"collections": len(collections), "names": collections}

    async def health_check(self) -> bool:
        """Perform a health check with a single-document read."""
        if not self._client:
            return False

        try:
            await self._client.collection(HEALTH_CHECK_COLLECTION).limit(1).get()
            return True
        except google_exceptions.GoogleAPIError as e:
            logger.warning("Firestore health check failed: %s", e)
            return False

    def get_provider_name(self) -> str:
        """Get the provider name."""
        return "firestore"

    def is_available(self) -> bool:
        """Check if Firestore is available."""
        return self._initialized and self._client is not None

    async def close(self) -> None:
        """Close the Firestore connection properly."""
        if self._client:
            try:
                self._client.close()
                logger.info("Firestore client closed")
            finally:
                self._client = None
                self._credentials = None
        await super().close()
