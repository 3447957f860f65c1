"""
Cache administration endpoints.
"""
from __future__ import annotations

from fastapi import APIRouter, Query

from app.config import get_logger
from app.dependencies import CacheDep
from app.models import CacheClearResponse, CacheStatsResponse

logger = get_logger("routes.cache")

router = APIRouter(prefix="/api/cache", tags=["Cache"])


@router.get("/stats", response_model=CacheStatsResponse, summary="Cache statistics")
async def cache_stats(cache: CacheDep) -> CacheStatsResponse:
    stats = await cache.stats()
    return CacheStatsResponse(provider=cache.get_provider_name(), stats=stats)


@router.post("/clear", response_model=CacheClearResponse, summary="Delete cached keys")
async def clear_cache(
    cache: CacheDep,
    pattern: str = Query(default="*", min_length=1, description="Glob pattern of keys to delete"),
) -> CacheClearResponse:
    deleted = await cache.clear_pattern(pattern)
    logger.info("Cache cleared | pattern=%s | deleted=%d", pattern, deleted)
    return CacheClearResponse(pattern=pattern, deleted=deleted)
