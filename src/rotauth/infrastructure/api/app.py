"""FastAPI application factory and configuration.

This module provides the application factory function for creating
and configuring the FastAPI application with all middleware, routes,
and lifecycle handlers.
"""

import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rotauth.core.config import get_settings
from rotauth.core.logging import bind_correlation_id, clear_context, configure_logging, get_logger
from rotauth.domain.exceptions import (
    InvalidGrant,
    RotationError,
    ScopeExceeded,
    UpstreamUnavailable,
)
from rotauth.infrastructure.api.routes.token_router import NO_STORE_HEADERS
from rotauth.infrastructure.container import build_services
from rotauth.infrastructure.persistence.database import (
    close_database,
    get_db_manager,
    init_database,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Initializes the database, starts the audit dispatcher and publishes the
    rotation authority on ``app.state``.
    """
    settings = get_settings()
    configure_logging(settings)

    logger.info(
        "Starting rotauth",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
    )

    try:
        await init_database()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise

    services = build_services(get_db_manager().session_factory, settings)
    await services.audit.start()
    app.state.rotation_authority = services.authority
    app.state.audit_dispatcher = services.audit

    yield

    logger.info("Shutting down rotauth")
    await services.audit.stop()
    await close_database()
    logger.info("Database connection closed")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Refresh token rotation authority",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    register_health_check(app)
    register_routes(app)
    register_exception_handlers(app)
    register_middleware(app)

    return app


def register_health_check(app: FastAPI) -> None:
    """Register health check endpoints."""

    @app.get("/health", tags=["health"])
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "service": "rotauth",
            "version": get_settings().app_version,
        }

    @app.get("/ready", tags=["health"])
    async def readiness_check():
        """Readiness check including database connectivity and the audit worker."""
        db_healthy = await get_db_manager().check_connection()
        dispatcher = getattr(app.state, "audit_dispatcher", None)
        audit_running = dispatcher is not None and dispatcher.running

        if db_healthy and audit_running:
            return {
                "status": "ready",
                "service": "rotauth",
                "version": get_settings().app_version,
                "database": "connected",
                "audit_pending": dispatcher.pending,
            }
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "service": "rotauth",
                "database": "connected" if db_healthy else "disconnected",
                "audit": "running" if audit_running else "stopped",
            },
        )

    @app.get("/live", tags=["health"])
    async def liveness_check():
        """Liveness check endpoint."""
        return {
            "status": "alive",
            "service": "rotauth",
            "version": get_settings().app_version,
        }


def register_routes(app: FastAPI) -> None:
    """Register API routes."""
    from rotauth.infrastructure.api.routes import admin_router, token_router

    settings = get_settings()

    app.include_router(token_router, prefix=f"{settings.api_prefix}/oauth", tags=["oauth"])
    app.include_router(admin_router, prefix=f"{settings.api_prefix}/admin", tags=["admin"])

    @app.get(settings.api_prefix, tags=["root"])
    async def api_root():
        """API root endpoint."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "api_version": "v1",
        }


def rotation_error_status(exc: RotationError) -> int:
    """Map a rotation error to its HTTP status."""
    if isinstance(exc, UpstreamUnavailable):
        return 503
    if isinstance(exc, (InvalidGrant, ScopeExceeded)):
        return 400
    return 500


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    @app.exception_handler(RotationError)
    async def rotation_error_handler(request: Request, exc: RotationError):
        """Render rotation errors as OAuth2 error responses."""
        status_code = rotation_error_status(exc)
        headers = dict(NO_STORE_HEADERS)
        if exc.retryable:
            headers["Retry-After"] = "1"

        logger.info(
            "Token request rejected",
            path=str(request.url.path),
            error=exc.error_code,
            reason=getattr(exc, "reason", None),
        )
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.error_code, "error_description": str(exc)},
            headers=headers,
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        """Handle invalid arguments reaching the authority."""
        return JSONResponse(
            status_code=400,
            content={"error": "invalid_request", "error_description": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.error(
            "Unhandled exception",
            path=str(request.url),
            method=request.method,
            error=str(exc),
            exc_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "server_error",
                "error_description": str(exc) if get_settings().debug else "An unexpected error occurred",
            },
        )


def register_middleware(app: FastAPI) -> None:
    """Register custom middleware."""

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Log every request and bind its correlation ID."""
        correlation_id = request.headers.get("X-Correlation-ID", f"cid_{uuid.uuid4().hex[:12]}")
        bind_correlation_id(correlation_id)

        logger.info(
            "Request started",
            method=request.method,
            path=str(request.url.path),
        )
        try:
            response = await call_next(request)
            response.headers["X-Correlation-ID"] = correlation_id
            logger.info(
                "Request completed",
                method=request.method,
                path=str(request.url.path),
                status_code=response.status_code,
            )
            return response
        finally:
            clear_context()


app = create_app()
