"""
Upload router for file storage.

Files are read in chunks and rejected as soon as they exceed the
effective limit for their content kind; validation happens before any
provider I/O.
"""
import time
from typing import Optional

from fastapi import APIRouter, File, Form, Query, Request, UploadFile, status

from app.config import get_logger, settings
from app.dependencies import AppStateDep, StorageDep, limiter
from app.exceptions import FileTooLargeError, ValidationError
from app.models import DeleteResponse, StorageEntryResponse, StorageListResponse, UploadResponse
from app.providers.storage import UploadDescriptor, parse_content_kind
from app.services.response_cache import get_or_compute, invalidate

logger = get_logger("routes.uploads")

router = APIRouter(prefix="/api/uploads", tags=["Uploads"])

CHUNK_SIZE = 1024 * 1024
LISTING_CACHE_PREFIX = "uploads:list:"


@router.post(
    "/{content_kind}",
    response_model=UploadResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a file",
    responses={
        400: {"description": "Invalid folder or empty file"},
        413: {"description": "File exceeds the size limit for its kind"},
        415: {"description": "File type not allowed for this kind"},
        429: {"description": "Rate limit exceeded"},
        503: {"description": "Storage unavailable"},
    },
)
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def upload_file(
    request: Request,
    content_kind: str,
    state: AppStateDep,
    storage: StorageDep,
    file: UploadFile = File(...),
    folder: Optional[str] = Form(default=None),
):
    """Store a video, image, document or archive and return its public URL."""
    start_time = time.perf_counter()
    kind = parse_content_kind(content_kind)
    if not file.filename:
        raise ValidationError("Uploaded file has no name")

    limit = storage.max_upload_size(kind)
    chunks: list[bytes] = []
    total_size = 0
    while True:
        chunk = await file.read(CHUNK_SIZE)
        if not chunk:
            break
        total_size += len(chunk)
        if total_size > limit:
            raise FileTooLargeError(f"File exceeds maximum size of {limit} bytes")
        chunks.append(chunk)

    descriptor = UploadDescriptor(
        name=file.filename,
        size=total_size,
        content_kind=kind,
        folder=(folder or f"{kind.value}s").strip("/"),
        content_type=file.content_type,
    )
    result = await storage.upload(descriptor, b"".join(chunks))
    await invalidate(state.cache, f"{LISTING_CACHE_PREFIX}*")

    elapsed = (time.perf_counter() - start_time) * 1000
    logger.info("Upload endpoint complete: %s key=%s | %.1fms", file.filename, result.key, elapsed)
    return UploadResponse(**result.to_dict())


@router.get(
    "",
    response_model=StorageListResponse,
    summary="List stored files",
)
async def list_files(
    state: AppStateDep,
    storage: StorageDep,
    folder: str = Query(..., min_length=1, description="Folder to list"),
):
    """List a folder; served from the cache for UPLOAD_LIST_CACHE_TTL seconds when it is available."""
    folder = folder.strip("/")

    async def build_listing() -> dict:
        entries = await storage.list_under(folder)
        listing = StorageListResponse(
            folder=folder,
            provider=storage.get_provider_name(),
            entries=[
                StorageEntryResponse(
                    key=entry.key,
                    size=entry.size,
                    last_modified=entry.last_modified,
                    url=storage.resolve_url(entry.key),
                )
                for entry in entries
            ],
        )
        return listing.model_dump(mode="json")

    listing = await get_or_compute(
        state.cache,
        f"{LISTING_CACHE_PREFIX}{folder}",
        build_listing,
        ttl=state.settings.UPLOAD_LIST_CACHE_TTL,
    )
    return StorageListResponse.model_validate(listing)


@router.delete(
    "/{key:path}",
    response_model=DeleteResponse,
    summary="Delete a stored file",
)
async def delete_file(key: str, state: AppStateDep, storage: StorageDep):
    """Delete a stored object. Deleting a missing key succeeds."""
    await storage.delete(key)
    await invalidate(state.cache, f"{LISTING_CACHE_PREFIX}*")
    return DeleteResponse(key=key)
