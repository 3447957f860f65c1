"""
Google Cloud Storage Provider implementation.

The google-cloud-storage client is synchronous; calls run in a worker
thread via asyncio.to_thread and carry the SDK's own timeout so the
thread finishes even when the awaiting coroutine has been cancelled.
"""
from __future__ import annotations

import asyncio
from urllib.parse import quote

from google.api_core import exceptions as google_exceptions
from google.auth.exceptions import GoogleAuthError
from google.cloud import storage as gcs
from google.oauth2 import service_account

from ...config import get_logger
from ...exceptions import ProviderInitError
from ...utils import decode_service_account_info
from ..configs import StorageConfig
from .interface import StorageEntry, StorageProviderInterface

logger = get_logger("storage.gcs")


class GCSStorageProvider(StorageProviderInterface):
    """Google Cloud Storage bucket."""

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        self._client: gcs.Client | None = None
        self._bucket: gcs.Bucket | None = None

    async def initialize(self) -> None:
        config = self._config
        if not config.gcs_project_id or not config.gcs_bucket:
            raise ProviderInitError(
                "GCS configuration incomplete",
                details="Set GCS_PROJECT_ID and GCS_BUCKET",
                provider="gcs",
            )

        try:
            credentials = None
            if config.gcs_creds_base64:
                info = decode_service_account_info(config.gcs_creds_base64)
                credentials = service_account.Credentials.from_service_account_info(info)
            elif config.gcs_key_file:
                credentials = service_account.Credentials.from_service_account_file(config.gcs_key_file)
            # Without explicit credentials the client falls back to ADC
            self._client = gcs.Client(project=config.gcs_project_id, credentials=credentials)
        except (ValueError, OSError, GoogleAuthError) as e:
            raise ProviderInitError(
                "Failed to create Cloud Storage client",
                details=str(e),
                provider="gcs",
            ) from e

        self._bucket = self._client.bucket(config.gcs_bucket)
        self._initialized = True
        logger.info("GCS storage initialized (bucket: %s)", config.gcs_bucket)

    async def _put_object(self, key: str, data: bytes, content_type: str) -> None:
        blob = self._bucket.blob(key)
        await asyncio.to_thread(
            blob.upload_from_string,
            data,
            content_type=content_type,
            timeout=self._config.call_timeout,
        )

    async def _delete_object(self, key: str) -> None:
        blob = self._bucket.blob(key)
        try:
            await asyncio.to_thread(blob.delete, timeout=self._config.call_timeout)
        except google_exceptions.NotFound:
            logger.debug("GCS delete of missing key ignored: %s", key)

    async def _list_objects(self, folder: str) -> list[StorageEntry]:
        def _collect() -> list[StorageEntry]:
            blobs = self._client.list_blobs(
                self._config.gcs_bucket,
                prefix=f"{folder}/",
                timeout=self._config.call_timeout,
            )
            return [
                StorageEntry(key=blob.name, size=blob.size, last_modified=blob.updated)
                for blob in blobs
            ]

        return await asyncio.to_thread(_collect)

    def resolve_url(self, key: str) -> str:
        return self._public_url(key) or (
            f"https://storage.googleapis.com/{self._config.gcs_bucket}/{quote(key)}"
        )

    async def health_check(self) -> bool:
        """Check that the bucket exists and is reachable."""
        if not self._bucket:
            return False
        try:
            return await asyncio.to_thread(self._bucket.exists, timeout=self._config.call_timeout)
        except (google_exceptions.GoogleAPIError, GoogleAuthError) as e:
            logger.warning("GCS health check failed: %s", e)
            return False

    def get_provider_name(self) -> str:
        return "gcs"

    async def close(self) -> None:
        if self._client:
            self._client.close()
            logger.info("GCS client closed")
        self._client = None
        self._bucket = None
        await super().close()
