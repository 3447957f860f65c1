"""
FastAPI application entry point.

This module initializes the FastAPI application with:
- Lifespan management (provider bootstrap, health sweeps, shutdown)
- Middleware configuration (CORS, rate limiting, observability)
- Exception handlers and Sentry error tracking
- Route registration
- OpenAPI documentation

Architecture:
- Provider pattern for hot-swappable backends (Storage, Email, Cache, Database)
- Fail-soft startup: a provider that cannot initialize is reported, not fatal
- Centralized configuration via Pydantic Settings

Usage:
    Run with uvicorn:
        uvicorn app.main:app --host 0.0.0.0 --port 8080

    Or with the server.py entry point:
        python server.py
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.config import Settings, get_logger, settings
from app.dependencies import limiter
from app.exceptions import BackendException
from app.middleware import ObservabilityMiddleware
from app.models import ErrorResponse
from app.providers.storage.local_impl import PUBLIC_PREFIX
from app.routes import cache as cache_routes
from app.routes import health, metrics, uploads
from app.services.error_tracking import ErrorTracker
from app.services.metrics import MetricsCollector
from app.state import AppState

logger = get_logger("app.main")


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles:
    - Startup: Initialize providers, run the first health sweep, start periodic sweeps
    - Shutdown: Stop sweeps and close provider connections
    """
    app_settings: Settings = app.state.settings
    logger.info("=" * 60)
    logger.info("Infrastructure Backend Starting...")
    logger.info("=" * 60)
    logger.info(
        "Configuration | Storage=%s | Email=%s | Cache=%s | Database=%s",
        app_settings.STORAGE_PROVIDER,
        app_settings.EMAIL_PROVIDER,
        app_settings.CACHE_PROVIDER,
        app_settings.DATABASE_PROVIDER,
    )

    try:
        app_state = await AppState.create(app_settings, app.state.metrics)
        app.state.app_state = app_state
    except Exception as exc:
        logger.critical("Startup failed: %s", exc, exc_info=True)
        raise

    snapshot = await app_state.health_checker.perform_checks()
    app_state.health_checker.start_periodic_checks(run_immediately=False)
    logger.info(
        "Provider Status | %s | overall=%s",
        " | ".join(
            f"{name}={'OK' if provider.is_available() else 'UNAVAILABLE'}"
            for name, provider in app_state.providers.items()
        ),
        snapshot.status.value,
    )
    failed = app_state.init_report.failed
    if failed:
        app.state.error_tracker.capture_message(
            "Providers unavailable at startup: "
            + ", ".join(f"{result.name} ({result.error})" for result in failed),
            level="warning",
        )
    logger.info("Server ready to accept requests")
    logger.info("=" * 60)

    yield  # Application running

    # Shutdown
    logger.info("Shutting down...")
    await app_state.close()
    logger.info("Shutdown complete")


# =============================================================================
# FastAPI Application
# =============================================================================

def create_app(app_settings: Settings | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        app_settings: Settings to use (defaults to the environment-derived settings)

    Returns:
        Configured FastAPI application instance
    """
    app_settings = app_settings or settings
    application = FastAPI(
        title="Infrastructure Backend API",
        description=(
            "File storage, email delivery, caching and persistence behind "
            "swappable providers, with health checks and request metrics."
        ),
        version=app_settings.APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
    )
    application.state.settings = app_settings
    application.state.metrics = MetricsCollector(window_size=app_settings.METRICS_WINDOW_SIZE)

    # Configure application
    configure_rate_limiting(application)
    configure_cors(application, app_settings)
    configure_observability(application)
    configure_error_tracking(application, app_settings)
    configure_exception_handlers(application)
    configure_routes(application, app_settings)
    configure_openapi(application, app_settings)

    return application


# =============================================================================
# Rate Limiting
# =============================================================================

def configure_rate_limiting(application: FastAPI) -> None:
    """Configure rate limiting."""
    application.state.limiter = limiter
    application.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    logger.debug("Rate limiting configured: uploads=%s", settings.RATE_LIMIT_UPLOAD)


# =============================================================================
# CORS Configuration
# =============================================================================

def configure_cors(application: FastAPI, app_settings: Settings) -> None:
    """Configure CORS middleware."""
    cors_origins = app_settings.CORS_ORIGINS_LIST
    allow_credentials = cors_origins != ["*"]

    if not allow_credentials:
        logger.warning(
            "[WARNING] CORS: Wildcard origin '*' configured. "
            "This disables credentials and is NOT recommended for production."
        )
    else:
        logger.info("CORS: Configured for origins: %s", cors_origins)

    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=allow_credentials,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Response-Time-Ms"],
    )


# =============================================================================
# Observability
# =============================================================================

def configure_observability(application: FastAPI) -> None:
    """Time and count every request."""
    application.add_middleware(ObservabilityMiddleware, metrics=application.state.metrics)


def configure_error_tracking(application: FastAPI, app_settings: Settings) -> None:
    """Start Sentry error tracking (no-op without SENTRY_DSN)."""
    tracker = ErrorTracker.from_settings(app_settings)
    tracker.initialize()
    application.state.error_tracker = tracker


# =============================================================================
# Exception Handlers
# =============================================================================

def configure_exception_handlers(application: FastAPI) -> None:
    """Configure exception handlers."""

    @application.exception_handler(BackendException)
    async def backend_exception_handler(
        request: Request,
        exc: BackendException,
    ) -> JSONResponse:
        """Handle typed backend exceptions."""
        # Read back by the observability middleware as the error kind
        request.state.error_type = exc.__class__.__name__
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "BackendException | path=%s | type=%s | message=%s | details=%s",
            request.url.path,
            exc.__class__.__name__,
            exc.message,
            exc.details,
        )
        if exc.status_code >= 500:
            request.app.state.error_tracker.capture_exception(
                exc, path=request.url.path, details=exc.details,
            )

        error_response = ErrorResponse(
            detail=exc.message,
            error_type=exc.__class__.__name__,
            error_code=exc.error_code,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(),
        )

    @application.exception_handler(Exception)
    async def global_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unhandled exceptions."""
        logger.error(
            "Unhandled exception | path=%s | type=%s | error=%s",
            request.url.path,
            type(exc).__name__,
            exc,
            exc_info=True,
        )
        request.app.state.error_tracker.capture_exception(exc, path=request.url.path)

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Internal server error",
                "error_type": "InternalError",
            },
        )


# =============================================================================
# Route Configuration
# =============================================================================

def configure_routes(application: FastAPI, app_settings: Settings) -> None:
    """Configure application routes."""
    application.include_router(health.router)
    application.include_router(metrics.router)
    application.include_router(uploads.router)
    application.include_router(cache_routes.router)

    # Local uploads are served by the app itself
    if app_settings.STORAGE_PROVIDER == "local" and not app_settings.CDN_URL:
        application.mount(
            PUBLIC_PREFIX,
            StaticFiles(directory=app_settings.LOCAL_UPLOAD_DIR, check_dir=False),
            name="uploads",
        )


# =============================================================================
# OpenAPI Schema
# =============================================================================

OPENAPI_TAGS = [
    {"name": "Health", "description": "Liveness, readiness and provider health"},
    {"name": "Metrics", "description": "Request counters and latency percentiles"},
    {"name": "Uploads", "description": "File storage on the configured provider"},
    {"name": "Cache", "description": "Cache statistics and invalidation"},
]


def configure_openapi(application: FastAPI, app_settings: Settings) -> None:
    """Build the schema once, with tag descriptions and the active providers."""

    def openapi() -> dict[str, Any]:
        if application.openapi_schema:
            return application.openapi_schema

        schema = get_openapi(
            title=application.title,
            version=application.version,
            description=application.description,
            routes=application.routes,
            tags=OPENAPI_TAGS,
        )
        schema["servers"] = [{"url": "/", "description": "Current server"}]
        schema["info"]["x-providers"] = {
            "storage": app_settings.STORAGE_PROVIDER,
            "email": app_settings.EMAIL_PROVIDER,
            "cache": app_settings.CACHE_PROVIDER,
            "database": app_settings.DATABASE_PROVIDER,
        }
        application.openapi_schema = schema
        return schema

    application.openapi = openapi


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()
