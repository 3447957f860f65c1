"""
Request observability middleware.

Times every request, records it in the MetricsCollector under its route
template and writes one access-log line per request.
"""
from __future__ import annotations

import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response
from starlette.types import ASGIApp

from app.config import get_logger
from app.services.metrics import MetricsCollector

logger = get_logger("access")

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time-Ms"


def route_template(request: Request) -> str:
    """Matched route path (e.g. /api/uploads/{content_kind}), not the raw URL."""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class ObservabilityMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, metrics: MetricsCollector) -> None:
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            duration_ms = (time.perf_counter() - start) * 1000
            self.metrics.record_request(
                request.method, route_template(request), 500, duration_ms, type(exc).__name__,
            )
            logger.error(
                "request | method=%s | path=%s | status=500 | duration_ms=%.1f | request_id=%s | error=%s",
                request.method, request.url.path, duration_ms, request_id, type(exc).__name__,
            )
            raise

        duration_ms = (time.perf_counter() - start) * 1000
        error_type = getattr(request.state, "error_type", None)
        self.metrics.record_request(
            request.method, route_template(request), response.status_code, duration_ms, error_type,
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers[RESPONSE_TIME_HEADER] = f"{duration_ms:.2f}"
        logger.info(
            "request | method=%s | path=%s | status=%d | duration_ms=%.1f | request_id=%s",
            request.method, request.url.path, response.status_code, duration_ms, request_id,
        )
        return response
