"""
Request metrics endpoints.

    GET /metrics             - JSON counters, latency percentiles, memory
    GET /api/metrics         - alias
    GET /metrics/prometheus  - Prometheus text exposition
"""
from __future__ import annotations

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse

from app.models import (
    ErrorCounts,
    MemoryStats,
    MetricsResponse,
    PerformanceStats,
    RequestCounts,
)
from app.services.metrics import MetricsCollector, MetricsSnapshot

router = APIRouter(tags=["Metrics"])


def get_metrics_collector(request: Request) -> MetricsCollector:
    return request.app.state.metrics


def build_metrics_response(snapshot: MetricsSnapshot) -> MetricsResponse:
    return MetricsResponse(
        requests=RequestCounts(
            total=snapshot.total_requests,
            by_method=snapshot.requests_by_method,
            by_status=snapshot.requests_by_status,
        ),
        errors=ErrorCounts(total=snapshot.total_errors, by_type=snapshot.errors_by_type),
        performance=PerformanceStats(
            avg_ms=snapshot.avg_ms,
            p50_ms=snapshot.p50_ms,
            p95_ms=snapshot.p95_ms,
            p99_ms=snapshot.p99_ms,
            sample_size=snapshot.sample_size,
        ),
        memory=MemoryStats(**snapshot.memory),
        uptime_seconds=snapshot.uptime_seconds,
        timestamp=snapshot.timestamp,
    )


@router.get(
    "/metrics",
    response_model=MetricsResponse,
    summary="Request metrics",
)
@router.get(
    "/api/metrics",
    response_model=MetricsResponse,
    summary="Request metrics (alias)",
)
async def metrics(request: Request) -> JSONResponse:
    """Counters by method and status class, error kinds, latency percentiles and memory."""
    snapshot = get_metrics_collector(request).get_metrics()
    return JSONResponse(content=build_metrics_response(snapshot).to_json_dict())


@router.get(
    "/metrics/prometheus",
    summary="Prometheus metrics",
    response_class=Response,
)
async def prometheus_metrics(request: Request) -> Response:
    body, content_type = get_metrics_collector(request).prometheus_exposition()
    return Response(content=body, media_type=content_type)
