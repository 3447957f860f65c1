"""
Amazon S3 Storage Provider implementation.

Uses aioboto3 so uploads are native asyncio I/O and cancel cleanly when
the call timeout expires. Works with S3-compatible stores through
AWS_S3_ENDPOINT_URL.
"""
from __future__ import annotations

from typing import Any
from urllib.parse import quote

from botocore.exceptions import BotoCoreError, ClientError

from ...config import get_logger
from ...exceptions import ProviderInitError
from ..aws import client_config, create_aws_session
from ..configs import StorageConfig
from .interface import StorageEntry, StorageProviderInterface

logger = get_logger("storage.s3")


class S3StorageProvider(StorageProviderInterface):
    """S3 object storage."""

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        self._session = None
        self._boto_config = client_config(config.call_timeout)

    async def initialize(self) -> None:
        config = self._config
        if not config.aws_access_key_id or not config.aws_secret_access_key:
            raise ProviderInitError(
                "AWS credentials not configured",
                details="Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY",
                provider="s3",
            )
        if not config.s3_bucket:
            raise ProviderInitError("AWS_S3_BUCKET not set", provider="s3")

        self._session = create_aws_session(
            config.aws_access_key_id,
            config.aws_secret_access_key,
            config.s3_region,
        )
        self._initialized = True
        logger.info("S3 storage initialized (bucket: %s, region: %s)", config.s3_bucket, config.s3_region)

    def _client(self) -> Any:
        return self._session.client(
            "s3",
            endpoint_url=self._config.s3_endpoint_url,
            config=self._boto_config,
        )

    async def _put_object(self, key: str, data: bytes, content_type: str) -> None:
        params: dict[str, Any] = {
            "Bucket": self._config.s3_bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if self._config.s3_acl:
            params["ACL"] = self._config.s3_acl
        async with self._client() as s3:
            await s3.put_object(**params)

    async def _delete_object(self, key: str) -> None:
        async with self._client() as s3:
            await s3.delete_object(Bucket=self._config.s3_bucket, Key=key)

    async def _list_objects(self, folder: str) -> list[StorageEntry]:
        entries: list[StorageEntry] = []
        async with self._client() as s3:
            paginator = s3.get_paginator("list_objects_v2")
            async for page in paginator.paginate(Bucket=self._config.s3_bucket, Prefix=f"{folder}/"):
                for obj in page.get("Contents", []):
                    entries.append(StorageEntry(
                        key=obj["Key"],
                        size=obj.get("Size"),
                        last_modified=obj.get("LastModified"),
                    ))
        return entries

    def resolve_url(self, key: str) -> str:
        cdn = self._public_url(key)
        if cdn:
            return cdn
        bucket = self._config.s3_bucket
        if self._config.s3_endpoint_url:
            return f"{self._config.s3_endpoint_url}/{bucket}/{quote(key)}"
        return f"https://{bucket}.s3.{self._config.s3_region}.amazonaws.com/{quote(key)}"

    async def health_check(self) -> bool:
        """Check that the bucket is reachable with the configured credentials."""
        if not self.is_available():
            return False
        try:
            async with self._client() as s3:
                await s3.head_bucket(Bucket=self._config.s3_bucket)
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning("S3 health check failed: %s", e)
            return False

    def get_provider_name(self) -> str:
        return "s3"

    async def close(self) -> None:
        self._session = None
        await super().close()
