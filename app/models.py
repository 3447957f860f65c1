"""
Pydantic models for response validation and OpenAPI documentation.

This module defines the data transfer objects (DTOs) returned by the API:
- Health and readiness responses
- Request metrics
- Upload and cache responses
- Standard error response

Fields are snake_case in Python and camelCase on the wire.

Usage:
    from app.models import HealthResponse, ErrorResponse
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base for response models serialized with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# =============================================================================
# Enums
# =============================================================================

class ServiceStatus(str, Enum):
    """Status values for health checks."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNREACHABLE = "unreachable"
    PENDING = "pending"


# =============================================================================
# Errors
# =============================================================================

class ErrorResponse(BaseModel):
    """
    Standard error response format.

    All API errors return this format for consistency.
    """

    model_config = ConfigDict(frozen=True)

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        ...,
        description="Error classification",
        examples=["ValidationError", "FeatureUnavailableError", "StorageError"],
    )
    error_code: str | None = Field(
        default=None,
        description="Machine-readable error code",
        examples=["FILE_TOO_LARGE", "PROVIDER_TIMEOUT"],
    )


# =============================================================================
# Health
# =============================================================================

class ProbeCheck(ApiModel):
    """Result of the last probe of a single provider."""

    status: ServiceStatus = Field(..., description="Probe status")
    duration_ms: float | None = Field(
        default=None,
        ge=0,
        description="Probe duration in milliseconds",
    )
    error: str | None = Field(default=None, description="Failure reason")
    critical: bool = Field(default=False, description="Whether failure makes the service unavailable")
    checked_at: datetime | None = Field(default=None, description="When the probe last ran")


class HealthResponse(ApiModel):
    """
    Health check response with per-provider statuses.

    Example:
        >>> HealthResponse(
        ...     status="healthy",
        ...     uptime_seconds=12.5,
        ...     version="1.0.0",
        ...     checks={"database": ProbeCheck(status="healthy")},
        ... )
    """

    status: ServiceStatus = Field(
        ...,
        description="Overall health status",
        examples=["healthy", "degraded", "unreachable"],
    )
    uptime_seconds: float = Field(..., ge=0, description="Seconds since startup")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the reported snapshot was taken",
    )
    version: str = Field(..., description="API version")
    checks: dict[str, ProbeCheck] = Field(
        default_factory=dict,
        description="Individual provider health statuses",
    )


class ReadinessResponse(ApiModel):
    """Readiness probe response for container orchestration."""

    ready: bool = Field(
        ...,
        description="Whether the service is ready to accept requests",
    )
    checks: dict[str, bool] = Field(
        default_factory=dict,
        description="Provider availability",
    )


class PingResponse(ApiModel):
    """Simple ping response."""

    status: str = Field(
        default="ok",
        description="Ping status",
    )


# =============================================================================
# Metrics
# =============================================================================

class RequestCounts(ApiModel):
    total: int = 0
    by_method: dict[str, int] = Field(default_factory=dict)
    by_status: dict[str, int] = Field(default_factory=dict)


class ErrorCounts(ApiModel):
    total: int = 0
    by_type: dict[str, int] = Field(default_factory=dict)


class PerformanceStats(ApiModel):
    avg_ms: float = 0.0
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    sample_size: int = 0


class MemoryStats(ApiModel):
    rss_bytes: int | None = None
    vms_bytes: int | None = None


class MetricsResponse(ApiModel):
    """Request counters, latency percentiles and process memory."""

    requests: RequestCounts
    errors: ErrorCounts
    performance: PerformanceStats
    memory: MemoryStats
    uptime_seconds: float
    timestamp: datetime


# =============================================================================
# Storage
# =============================================================================

class UploadResponse(ApiModel):
    url: str = Field(..., description="Public URL of the stored object")
    key: str = Field(..., description="Storage key, used for deletion")
    provider: str = Field(..., description="Storage backend that holds the object")


class StorageEntryResponse(ApiModel):
    key: str
    size: int | None = None
    last_modified: datetime | None = None
    url: str


class StorageListResponse(ApiModel):
    folder: str
    provider: str
    entries: list[StorageEntryResponse] = Field(default_factory=list)


class DeleteResponse(ApiModel):
    key: str
    deleted: bool = True


# =============================================================================
# Cache
# =============================================================================

class CacheStatsResponse(ApiModel):
    provider: str
    stats: dict[str, bool | int | float | str | None] = Field(default_factory=dict)


class CacheClearResponse(ApiModel):
    pattern: str
    deleted: int
