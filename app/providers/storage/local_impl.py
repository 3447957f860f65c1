"""
Local filesystem Storage Provider implementation.

Files are written with aiofiles under LOCAL_UPLOAD_DIR and served from
/uploads (or CDN_URL when configured).
"""
from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from stat import S_ISREG

import aiofiles
import aiofiles.os

from ...config import get_logger
from ...exceptions import ProviderInitError, ValidationError
from ..configs import StorageConfig
from .interface import StorageEntry, StorageProviderInterface

logger = get_logger("storage.local")

PUBLIC_PREFIX = "/uploads"


class LocalStorageProvider(StorageProviderInterface):
    """Stores uploads on the local disk."""

    def __init__(self, config: StorageConfig) -> None:
        super().__init__(config)
        self._root = Path(config.local_upload_dir).resolve()

    @property
    def root(self) -> Path:
        return self._root

    async def initialize(self) -> None:
        try:
            await aiofiles.os.makedirs(self._root, exist_ok=True)
        except OSError as e:
            raise ProviderInitError(
                f"Cannot create upload directory {self._root}",
                details=str(e),
                provider="local",
            ) from e
        if not os.access(self._root, os.W_OK):
            raise ProviderInitError(f"Upload directory {self._root} is not writable", provider="local")

        self._initialized = True
        logger.info("Local storage initialized (root: %s)", self._root)

    def _path_for(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if path != self._root and self._root not in path.parents:
            raise ValidationError(f"Storage key escapes upload root: '{key}'")
        return path

    async def _put_object(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path_for(key)
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)

    async def _delete_object(self, key: str) -> None:
        path = self._path_for(key)
        if await aiofiles.os.path.isfile(path):
            await aiofiles.os.remove(path)

    async def _list_objects(self, folder: str) -> list[StorageEntry]:
        folder_path = self._path_for(folder)
        if not await aiofiles.os.path.isdir(folder_path):
            return []

        entries: list[StorageEntry] = []
        for name in sorted(await aiofiles.os.listdir(folder_path)):
            stat = await aiofiles.os.stat(folder_path / name)
            if not S_ISREG(stat.st_mode):
                continue
            entries.append(StorageEntry(
                key=f"{folder}/{name}",
                size=stat.st_size,
                last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            ))
        return entries

    def resolve_url(self, key: str) -> str:
        return self._public_url(key) or f"{PUBLIC_PREFIX}/{key}"

    async def health_check(self) -> bool:
        return (
            self.is_available()
            and await aiofiles.os.path.isdir(self._root)
            and os.access(self._root, os.W_OK)
        )

    def get_provider_name(self) -> str:
        return "local"
