"""Tests for storage upload validation and key generation.

Covers:
- Invalid descriptors never reach provider I/O
- Effective size limit is the tighter of per-kind and global ceilings
- Extension, MIME type, folder and empty-file checks
- Payload/declared size mismatch
- Storage key shape and filename sanitization
- Upload on an uninitialized provider raises FeatureUnavailableError
"""

from __future__ import annotations

import re
from pathlib import Path

import pytest

from app.exceptions import (
    FeatureUnavailableError,
    FileTooLargeError,
    UnsupportedFileTypeError,
    ValidationError,
)
from app.providers.storage import ContentKind, UploadDescriptor, parse_content_kind
from app.providers.storage.interface import build_storage_key, effective_max_size
from tests.conftest import InMemoryStorageProvider, make_storage_config

_MB = 1024 * 1024

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_descriptor(
    name: str = "photo.png",
    size: int = 2 * _MB,
    kind: ContentKind = ContentKind.IMAGE,
    folder: str = "images",
    content_type: str | None = "image/png",
) -> UploadDescriptor:
    return UploadDescriptor(
        name=name,
        size=size,
        content_kind=kind,
        folder=folder,
        content_type=content_type,
    )


async def _make_provider(tmp_path: Path, **overrides: object) -> InMemoryStorageProvider:
    provider = InMemoryStorageProvider(make_storage_config(tmp_path, **overrides))
    await provider.initialize()
    return provider


# ---------------------------------------------------------------------------
# Size limits
# ---------------------------------------------------------------------------


class TestSizeLimits:
    def test_image_limit_is_five_megabytes(self) -> None:
        assert effective_max_size(ContentKind.IMAGE, 50 * _MB) == 5 * _MB

    def test_global_limit_wins_when_tighter(self) -> None:
        assert effective_max_size(ContentKind.VIDEO, 10 * _MB) == 10 * _MB

    @pytest.mark.asyncio
    async def test_oversized_image_rejected_without_provider_call(self, tmp_path: Path) -> None:
        provider = await _make_provider(tmp_path)
        descriptor = _make_descriptor(size=6 * _MB)

        with pytest.raises(FileTooLargeError) as exc_info:
            await provider.upload(descriptor, b"x" * (6 * _MB))

        assert exc_info.value.status_code == 413
        assert provider.put_calls == 0

    @pytest.mark.asyncio
    async def test_image_within_limit_uploads(self, tmp_path: Path) -> None:
        provider = await _make_provider(tmp_path)
        descriptor = _make_descriptor(size=2 * _MB)

        result = await provider.upload(descriptor, b"x" * (2 * _MB))

        assert set(result.to_dict()) == {"url", "key", "provider"}
        assert result.provider == "inmemory"
        assert result.key.startswith("images/")
        assert result.url.endswith(result.key)
        assert provider.put_calls == 1
        assert provider.objects[result.key][1] == "image/png"


# ---------------------------------------------------------------------------
# Type checks
# ---------------------------------------------------------------------------


class TestTypeChecks:
    @pytest.mark.asyncio
    async def test_wrong_extension_rejected(self, tmp_path: Path) -> None:
        provider = await _make_provider(tmp_path)
        with pytest.raises(UnsupportedFileTypeError):
            await provider.upload(_make_descriptor(name="clip.mp4", content_type=None), b"x" * (2 * _MB))
        assert provider.put_calls == 0

    @pytest.mark.asyncio
    async def test_mismatched_content_type_rejected(self, tmp_path: Path) -> None:
        provider = await _make_provider(tmp_path)
        with pytest.raises(UnsupportedFileTypeError):
            await provider.upload(_make_descriptor(content_type="application/pdf"), b"x" * (2 * _MB))
        assert provider.put_calls == 0

    def test_generic_content_type_is_ignored(self) -> None:
        descriptor = _make_descriptor(name="report.pdf", kind=ContentKind.DOCUMENT,
                                      content_type="application/octet-stream")
        assert descriptor.declared_content_type is None
        assert descriptor.resolved_content_type == "application/pdf"

    def test_extension_is_case_insensitive(self) -> None:
        assert _make_descriptor(name="PHOTO.JPG").extension == "jpg"

    def test_parse_content_kind(self) -> None:
        assert parse_content_kind(" Video ") is ContentKind.VIDEO

    def test_parse_unknown_content_kind(self) -> None:
        with pytest.raises(ValidationError):
            parse_content_kind("audio")


# ---------------------------------------------------------------------------
# Other validation
# ---------------------------------------------------------------------------


class TestDescriptorValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("folder", ["", "../etc", "/abs", "a//b", "has space"])
    async def test_invalid_folder_rejected(self, tmp_path: Path, folder: str) -> None:
        provider = await _make_provider(tmp_path)
        with pytest.raises(ValidationError):
            await provider.upload(_make_descriptor(folder=folder), b"x" * (2 * _MB))
        assert provider.put_calls == 0

    @pytest.mark.asyncio
    async def test_empty_file_rejected(self, tmp_path: Path) -> None:
        provider = await _make_provider(tmp_path)
        with pytest.raises(ValidationError):
            await provider.upload(_make_descriptor(size=0), b"")

    @pytest.mark.asyncio
    async def test_size_mismatch_rejected(self, tmp_path: Path) -> None:
        provider = await _make_provider(tmp_path)
        with pytest.raises(ValidationError, match="does not match"):
            await provider.upload(_make_descriptor(size=100), b"x" * 99)
        assert provider.put_calls == 0

    @pytest.mark.asyncio
    async def test_uninitialized_provider_is_unavailable(self, tmp_path: Path) -> None:
        provider = InMemoryStorageProvider(make_storage_config(tmp_path))
        with pytest.raises(FeatureUnavailableError):
            await provider.upload(_make_descriptor(size=10), b"x" * 10)

    @pytest.mark.asyncio
    async def test_validation_precedes_availability(self, tmp_path: Path) -> None:
        provider = InMemoryStorageProvider(make_storage_config(tmp_path))
        with pytest.raises(FileTooLargeError):
            await provider.upload(_make_descriptor(size=6 * _MB), b"x")


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


class TestStorageKeys:
    def test_key_shape(self) -> None:
        key = build_storage_key(_make_descriptor(name="My Photo (1).png"))
        assert re.fullmatch(r"images/\d{13}-[0-9a-f]{8}-My_Photo_1_\.png", key)

    def test_keys_are_unique(self) -> None:
        descriptor = _make_descriptor()
        keys = {build_storage_key(descriptor) for _ in range(50)}
        assert len(keys) == 50

    def test_directory_components_dropped(self) -> None:
        key = build_storage_key(_make_descriptor(name="../../etc/passwd.png"))
        assert key.startswith("images/")
        assert key.endswith("-passwd.png")
        assert ".." not in key

    @pytest.mark.asyncio
    async def test_delete_rejects_traversal_key(self, tmp_path: Path) -> None:
        provider = await _make_provider(tmp_path)
        with pytest.raises(ValidationError):
            await provider.delete("images/../../secret")

    @pytest.mark.asyncio
    async def test_cdn_url_used_when_configured(self, tmp_path: Path) -> None:
        provider = await _make_provider(tmp_path, cdn_url="https://cdn.rtechsolutions.in")
        result = await provider.upload(_make_descriptor(size=4), b"abcd")
        assert result.url == f"https://cdn.rtechsolutions.in/{result.key}"
