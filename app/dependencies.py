"""
FastAPI dependencies for dependency injection.

This module centralizes all FastAPI dependencies for:
- Application state injection
- Feature gating on provider availability
- Rate limiting
- Common utilities

Usage:
    from app.dependencies import StorageDep

    @router.post("/endpoint")
    async def endpoint(storage: StorageDep):
        ...
"""
from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from slowapi import Limiter

from app.config import get_logger
from app.exceptions import FeatureUnavailableError
from app.providers.cache import CacheProviderInterface
from app.providers.storage import StorageProviderInterface
from app.state import AppState, get_app_state

logger = get_logger("dependencies")


# =============================================================================
# Client Information
# =============================================================================

def get_client_ip(request: Request) -> str:
    """
    Get the real client IP address.

    Checks X-Forwarded-For and X-Real-IP headers before falling
    back to the direct client IP.

    Args:
        request: FastAPI request object

    Returns:
        Client IP address string
    """
    # Check X-Forwarded-For (can contain multiple IPs)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    # Check X-Real-IP
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    # Fall back to direct client IP
    if request.client:
        return request.client.host

    return "unknown"


# Shared limiter; registered on the app in configure_rate_limiting()
limiter = Limiter(key_func=get_client_ip)


# =============================================================================
# Feature Gating
# =============================================================================

def _require(provider: object, interface: type, feature: str) -> object:
    if not isinstance(provider, interface) or not provider.is_available():
        logger.warning("Feature unavailable | feature=%s", feature)
        raise FeatureUnavailableError(f"{feature} is currently unavailable")
    return provider


def require_storage(state: AppState = Depends(get_app_state)) -> StorageProviderInterface:
    """Storage provider, or 503 if it did not initialize."""
    return _require(state.storage, StorageProviderInterface, "File storage")


def require_cache(state: AppState = Depends(get_app_state)) -> CacheProviderInterface:
    return _require(state.cache, CacheProviderInterface, "Cache")


# =============================================================================
# Type Aliases for Common Dependencies
# =============================================================================

AppStateDep = Annotated[AppState, Depends(get_app_state)]
StorageDep = Annotated[StorageProviderInterface, Depends(require_storage)]
CacheDep = Annotated[CacheProviderInterface, Depends(require_cache)]
