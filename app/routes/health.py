"""
Health check endpoints.

This module provides health monitoring endpoints for:
- Liveness probes (ping)
- Readiness probes (ready)
- Provider health (health, reading the latest sweep or ?refresh=true)

These endpoints follow Kubernetes health check patterns for
container orchestration compatibility.

Usage:
    GET /           - Full health check
    GET /health     - Full health check (alias)
    GET /api/health - Full health check (alias)
    GET /ping       - Simple liveness probe
    GET /ready      - Readiness probe
"""
from __future__ import annotations

from fastapi import APIRouter, Query, status
from fastapi.responses import JSONResponse

from app.config import get_logger
from app.dependencies import AppStateDep
from app.exceptions import HealthCheckError
from app.models import (
    HealthResponse,
    PingResponse,
    ProbeCheck,
    ReadinessResponse,
    ServiceStatus,
)
from app.services.health import HealthSnapshot, OverallStatus
from app.state import AppState

logger = get_logger("routes.health")

router = APIRouter(tags=["Health"])

_HEALTH_RESPONSES = {
    200: {"description": "Service is healthy or degraded"},
    503: {"description": "Health sweep failed or a critical provider is unreachable"},
}


def build_health_response(state: AppState, snapshot: HealthSnapshot) -> tuple[HealthResponse, int]:
    """
    Merge the latest snapshot with providers that never came up.

    Providers that failed initialization are not probed, so they are
    reported here as unreachable entries from the init report.
    """
    checks = {
        name: ProbeCheck(
            status=ServiceStatus(result.status.value),
            duration_ms=result.duration_ms,
            error=result.error,
            critical=result.critical,
            checked_at=result.checked_at,
        )
        for name, result in snapshot.checks.items()
    }

    critical_names = state.settings.CRITICAL_PROVIDERS_SET
    failed_inits = [result for result in state.init_report.failed if result.name not in checks]
    for result in failed_inits:
        checks[result.name] = ProbeCheck(
            status=ServiceStatus.UNREACHABLE,
            error=result.error,
            critical=result.name in critical_names,
        )

    overall = snapshot.status
    if overall is OverallStatus.HEALTHY and failed_inits:
        overall = OverallStatus.DEGRADED

    critical_down = snapshot.has_critical_failure or any(
        result.name in critical_names for result in failed_inits
    )
    code = (
        status.HTTP_503_SERVICE_UNAVAILABLE
        if overall is OverallStatus.UNREACHABLE or critical_down
        else status.HTTP_200_OK
    )

    response = HealthResponse(
        status=ServiceStatus(overall.value),
        uptime_seconds=round(state.uptime_seconds, 3),
        timestamp=snapshot.timestamp,
        version=state.settings.APP_VERSION,
        checks=checks,
    )
    return response, code


# =============================================================================
# Health Check Endpoint
# =============================================================================

@router.get(
    "/",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the latest provider health snapshot.",
    responses=_HEALTH_RESPONSES,
)
@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check (alias)",
    responses=_HEALTH_RESPONSES,
)
@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check (alias)",
    responses=_HEALTH_RESPONSES,
)
async def health_check(
    state: AppStateDep,
    refresh: bool = Query(
        default=False,
        description="Run a health sweep now instead of reading the last one",
    ),
) -> JSONResponse:
    """
    Returns provider health.

    The health check reports status as:
    - **healthy**: Every provider is up
    - **degraded**: Some providers are unreachable
    - **unreachable**: The health sweep could not complete

    HTTP 503 is returned when the status is unreachable or a critical
    provider is down.
    """
    snapshot = state.health_checker.snapshot
    if refresh:
        try:
            snapshot = await state.health_checker.perform_checks()
        except HealthCheckError as e:
            logger.warning("On-demand health sweep failed: %s", e.details)
            snapshot = HealthSnapshot(status=OverallStatus.UNREACHABLE, checks=snapshot.checks)

    response, code = build_health_response(state, snapshot)
    if code != status.HTTP_200_OK:
        logger.warning(
            "Health check failing | status=%s | unreachable=%s",
            response.status.value,
            [name for name, check in response.checks.items() if check.status is ServiceStatus.UNREACHABLE],
        )
    return JSONResponse(status_code=code, content=response.to_json_dict())


# =============================================================================
# Liveness Probe
# =============================================================================

@router.get(
    "/ping",
    response_model=PingResponse,
    summary="Liveness probe",
    description="Simple ping endpoint for keepalive checks. Does not verify provider health.",
)
async def ping() -> PingResponse:
    """
    Simple ping endpoint for keepalive checks.

    This endpoint always returns 200 as long as the server is running.
    It does not check any external dependencies.
    """
    return PingResponse(status="ok")


# =============================================================================
# Readiness Probe
# =============================================================================

@router.get(
    "/ready",
    response_model=ReadinessResponse,
    summary="Readiness probe",
    description="Kubernetes-style readiness probe.",
    responses={
        200: {"description": "Service is ready to accept requests"},
        503: {"description": "A critical provider is unavailable"},
    },
)
async def readiness_check(
    state: AppStateDep,
) -> JSONResponse:
    """
    Returns 200 if every critical provider is available, 503 otherwise.

    Non-critical providers are listed for information only.
    """
    checks = {name: provider.is_available() for name, provider in state.providers.items()}
    ready = state.is_ready()
    response = ReadinessResponse(ready=ready, checks=checks)

    if not ready:
        logger.warning("Readiness check failed: %s", checks)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.to_json_dict(),
        )
    return JSONResponse(status_code=status.HTTP_200_OK, content=response.to_json_dict())
