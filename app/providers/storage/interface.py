"""
Abstract interface for file storage providers.

All storage providers must implement this interface to ensure
consistent behavior and easy hot-swapping. Upload validation and key
generation live here so no implementation can skip them: a descriptor
that fails validation never reaches provider I/O.
"""
from __future__ import annotations

import mimetypes
import time
import uuid
from abc import abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import PurePosixPath
from types import MappingProxyType
from typing import Any, ClassVar, Mapping

from ...config import get_logger
from ...exceptions import (
    FileTooLargeError,
    StorageError,
    UnsupportedFileTypeError,
    ValidationError,
)
from ...utils import is_valid_folder, is_valid_storage_key, sanitize_filename
from ..base import ProviderInterface
from ..configs import StorageConfig

logger = get_logger("storage")

_MB = 1024 * 1024
_GB = 1024 * _MB


class ContentKind(str, Enum):
    """Categories of uploadable content, each with its own policy."""
    VIDEO = "video"
    IMAGE = "image"
    DOCUMENT = "document"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class FilePolicy:
    """Allowed extensions, MIME prefixes and size ceiling for one kind."""
    extensions: frozenset[str]
    content_type_prefixes: tuple[str, ...]
    max_size: int


FILE_POLICIES: Mapping[ContentKind, FilePolicy] = MappingProxyType({
    ContentKind.VIDEO: FilePolicy(
        extensions=frozenset({"mp4", "avi", "mkv", "mov", "flv", "wmv"}),
        content_type_prefixes=("video/",),
        max_size=1 * _GB,
    ),
    ContentKind.IMAGE: FilePolicy(
        extensions=frozenset({"jpg", "jpeg", "png", "gif", "webp"}),
        content_type_prefixes=("image/",),
        max_size=5 * _MB,
    ),
    ContentKind.DOCUMENT: FilePolicy(
        extensions=frozenset({"pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx"}),
        content_type_prefixes=(
            "application/pdf",
            "application/msword",
            "application/vnd.ms-",
            "application/vnd.openxmlformats-officedocument.",
        ),
        max_size=50 * _MB,
    ),
    ContentKind.ARCHIVE: FilePolicy(
        extensions=frozenset({"zip", "rar", "7z", "tar", "gz"}),
        content_type_prefixes=(
            "application/zip",
            "application/x-zip",
            "application/vnd.rar",
            "application/x-rar",
            "application/x-7z",
            "application/x-tar",
            "application/gzip",
            "application/x-gzip",
        ),
        max_size=1 * _GB,
    ),
})

# Declared types that say nothing about the payload
_GENERIC_CONTENT_TYPES = frozenset({"", "application/octet-stream", "binary/octet-stream"})


@dataclass(frozen=True)
class UploadDescriptor:
    """What the client claims about a file before any bytes are stored."""
    name: str
    size: int
    content_kind: ContentKind
    folder: str
    content_type: str | None = None

    @property
    def extension(self) -> str:
        return PurePosixPath(self.name).suffix.lstrip(".").lower()

    @property
    def declared_content_type(self) -> str | None:
        """Client-declared MIME type, ignoring generic placeholders."""
        if not self.content_type:
            return None
        value = self.content_type.split(";", 1)[0].strip().lower()
        return None if value in _GENERIC_CONTENT_TYPES else value

    @property
    def resolved_content_type(self) -> str:
        """MIME type to store the object with."""
        return (
            self.declared_content_type
            or mimetypes.guess_type(self.name)[0]
            or "application/octet-stream"
        )


@dataclass(frozen=True)
class UploadResult:
    """Where a stored file ended up."""
    url: str
    key: str
    provider: str

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "key": self.key, "provider": self.provider}


@dataclass(frozen=True)
class StorageEntry:
    """One stored object as returned by list_under()."""
    key: str
    size: int | None = None
    last_modified: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


def parse_content_kind(value: str) -> ContentKind:
    """Parse a content kind from user input."""
    try:
        return ContentKind(value.strip().lower())
    except ValueError:
        allowed = ", ".join(kind.value for kind in ContentKind)
        raise ValidationError(f"Unknown content kind '{value}'. Allowed: {allowed}") from None


def effective_max_size(kind: ContentKind, max_file_size: int) -> int:
    """The tighter of the per-kind ceiling and the configured global ceiling."""
    return min(FILE_POLICIES[kind].max_size, max_file_size)


def validate_descriptor(descriptor: UploadDescriptor, max_file_size: int) -> None:
    """
    Validate an upload descriptor against its kind's policy.

    Raises:
        ValidationError: Bad folder or empty file
        UnsupportedFileTypeError: Extension or declared MIME type not allowed
        FileTooLargeError: Size exceeds the effective limit
    """
    policy = FILE_POLICIES[descriptor.content_kind]

    if not is_valid_folder(descriptor.folder):
        raise ValidationError(
            f"Invalid folder '{descriptor.folder}'",
            details="Folders are relative paths of letters, digits, '-' and '_'",
        )

    extension = descriptor.extension
    if extension not in policy.extensions:
        raise UnsupportedFileTypeError(
            f"Invalid file extension '.{extension}' for {descriptor.content_kind.value}",
            details=f"Allowed: {', '.join(sorted(policy.extensions))}",
        )

    declared = descriptor.declared_content_type
    if declared and not declared.startswith(policy.content_type_prefixes):
        raise UnsupportedFileTypeError(
            f"Content type '{declared}' is not allowed for {descriptor.content_kind.value}",
        )

    if descriptor.size <= 0:
        raise ValidationError("File is empty")

    limit = effective_max_size(descriptor.content_kind, max_file_size)
    if descriptor.size > limit:
        raise FileTooLargeError(
            f"File size exceeds limit ({limit / _MB:g}MB)",
            details=f"size={descriptor.size} limit={limit}",
        )


def build_storage_key(descriptor: UploadDescriptor) -> str:
    """Collision-resistant key: <folder>/<epoch-ms>-<8 hex>-<sanitized name>."""
    timestamp_ms = int(time.time() * 1000)
    return f"{descriptor.folder}/{timestamp_ms}-{uuid.uuid4().hex[:8]}-{sanitize_filename(descriptor.name)}"


class StorageProviderInterface(ProviderInterface):
    """
    Abstract interface for object/file storage providers.

    Implementations provide the raw object operations (_put_object,
    _delete_object, _list_objects) and URL resolution; the public
    operations here add validation, key generation, timeouts and logging.
    """

    family: ClassVar[str] = "storage"

    def __init__(self, config: StorageConfig) -> None:
        super().__init__()
        self._config = config

    @property
    def config(self) -> StorageConfig:
        return self._config

    def max_upload_size(self, kind: ContentKind) -> int:
        return effective_max_size(kind, self._config.max_file_size)

    def validate(self, descriptor: UploadDescriptor) -> None:
        """Validate a descriptor without touching the backing store."""
        validate_descriptor(descriptor, self._config.max_file_size)

    async def upload(self, descriptor: UploadDescriptor, data: bytes) -> UploadResult:
        """
        Validate and store a file.

        Args:
            descriptor: Client-declared file metadata
            data: File contents; must be exactly descriptor.size bytes

        Returns:
            UploadResult with public URL, storage key and provider name

        Raises:
            ValidationError: Descriptor rejected (no provider call made)
            StorageError: Provider call failed
            ProviderTimeoutError: Provider call exceeded its timeout
        """
        self.validate(descriptor)
        if len(data) != descriptor.size:
            raise ValidationError(
                "Declared file size does not match payload",
                details=f"declared={descriptor.size} actual={len(data)}",
            )
        self._ensure_available()

        key = build_storage_key(descriptor)
        start = time.perf_counter()
        await self._call(
            "upload",
            self._put_object(key, data, descriptor.resolved_content_type),
            timeout=self._config.call_timeout,
            error_cls=StorageError,
            target=key,
        )
        logger.info(
            "File uploaded | provider=%s | key=%s | size=%d | elapsed_ms=%.1f",
            self.get_provider_name(),
            key,
            descriptor.size,
            (time.perf_counter() - start) * 1000,
        )
        return UploadResult(url=self.resolve_url(key), key=key, provider=self.get_provider_name())

    async def delete(self, key: str) -> None:
        """Delete a stored object. Deleting a missing key is not an error."""
        self._check_key(key)
        self._ensure_available()
        await self._call(
            "delete",
            self._delete_object(key),
            timeout=self._config.call_timeout,
            error_cls=StorageError,
            target=key,
        )
        logger.info("File deleted | provider=%s | key=%s", self.get_provider_name(), key)

    async def list_under(self, folder: str) -> list[StorageEntry]:
        """List objects stored under a folder prefix."""
        folder = folder.strip("/")
        if not is_valid_folder(folder):
            raise ValidationError(f"Invalid folder '{folder}'")
        self._ensure_available()
        return await self._call(
            "list",
            self._list_objects(folder),
            timeout=self._config.call_timeout,
            error_cls=StorageError,
            target=folder,
        )

    @staticmethod
    def _check_key(key: str) -> None:
        if not is_valid_storage_key(key):
            raise ValidationError(f"Invalid storage key '{key}'")

    def _public_url(self, key: str) -> str | None:
        """CDN URL for a key when a CDN is configured."""
        if self._config.cdn_url:
            return f"{self._config.cdn_url}/{key}"
        return None

    @abstractmethod
    def resolve_url(self, key: str) -> str:
        """Public URL for a stored key."""

    @abstractmethod
    async def _put_object(self, key: str, data: bytes, content_type: str) -> None:
        """Write an object to the backing store."""

    @abstractmethod
    async def _delete_object(self, key: str) -> None:
        """Remove an object from the backing store."""

    @abstractmethod
    async def _list_objects(self, folder: str) -> list[StorageEntry]:
        """List objects whose key starts with ``folder/``."""
