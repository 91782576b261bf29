"""FastAPI application factory and configuration.

Builds the application with its shared authentication state, middleware,
routes and exception handlers. Shared singletons are attached to
``app.state`` so request-scoped dependencies can reach them.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gatehouse.core.config import Settings, get_settings
from gatehouse.core.logging import (
    bind_correlation_id,
    clear_context,
    configure_logging,
    get_logger,
    new_correlation_id,
)
from gatehouse.domain.exceptions import GatehouseError
from gatehouse.domain.services import TransitionLocks
from gatehouse.infrastructure.auth import RevocationRegistry, TokenCodec
from gatehouse.infrastructure.auth.authenticator import RequestAuthenticator
from gatehouse.infrastructure.auth.middleware import AuthenticationMiddleware
from gatehouse.infrastructure.persistence.database import (
    close_database,
    get_db_manager,
    init_database,
)
from gatehouse.infrastructure.services.notification_service import build_notification_sender

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start and stop the database, the revocation pruner and pending mail."""
    settings: Settings = app.state.settings
    configure_logging(settings)

    logger.info(
        "Starting Gatehouse",
        app_name=settings.app_name,
        version=settings.app_version,
        environment=settings.environment,
        registration_flow=settings.registration_flow,
    )

    try:
        await init_database()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e))
        raise

    app.state.revocation_registry.start_pruner(settings.revocation_prune_interval_seconds)

    yield

    logger.info("Shutting down Gatehouse")
    await app.state.revocation_registry.stop_pruner()
    await app.state.notification_sender.drain()
    await close_database()
    logger.info("Database connection closed")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Settings to build the app with. Defaults to the cached
            environment settings.

    Returns:
        FastAPI: Configured application instance.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Employee account registration, activation and authentication",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        openapi_url="/openapi.json" if settings.is_development else None,
        lifespan=lifespan,
    )

    token_codec = TokenCodec(
        secret=settings.secret_key,
        access_ttl=settings.access_token_ttl,
        activation_ttl=settings.activation_token_ttl,
        clock_skew=settings.clock_skew,
    )
    revocation_registry = RevocationRegistry(clock_skew_seconds=settings.clock_skew_seconds)

    app.state.settings = settings
    app.state.token_codec = token_codec
    app.state.revocation_registry = revocation_registry
    app.state.notification_sender = build_notification_sender(settings)
    app.state.transition_locks = TransitionLocks()
    app.state.request_authenticator = RequestAuthenticator(
        token_codec, revocation_registry, settings.public_paths
    )

    register_middleware(app)

    # Added last so it runs first and answers preflight requests itself.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    register_health_check(app)
    register_routes(app)
    register_exception_handlers(app)

    return app


def register_health_check(app: FastAPI) -> None:
    """Register health check endpoints."""

    @app.get("/health", tags=["health"])
    async def health_check():
        """Returns 200 while the process is serving requests."""
        return {
            "status": "healthy",
            "service": "Gatehouse",
            "version": app.state.settings.app_version,
        }

    @app.get("/ready", tags=["health"])
    async def readiness_check():
        """Returns 200 once the database answers, 503 otherwise."""
        db_healthy = await get_db_manager().check_connection()
        if db_healthy:
            return {
                "status": "ready",
                "service": "Gatehouse",
                "version": app.state.settings.app_version,
                "database": "connected",
            }
        return JSONResponse(
            status_code=503,
            content={
                "status": "not_ready",
                "service": "Gatehouse",
                "database": "disconnected",
            },
        )

    @app.get("/live", tags=["health"])
    async def liveness_check():
        return {
            "status": "alive",
            "service": "Gatehouse",
            "version": app.state.settings.app_version,
        }


def register_routes(app: FastAPI) -> None:
    """Register API routes. Token inspection is never mounted in production."""
    from gatehouse.infrastructure.api.routes import auth_router, debug_router, users_router

    settings = app.state.settings
    prefix = settings.api_prefix
    app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["auth"])
    app.include_router(users_router, prefix=f"{prefix}/users", tags=["users"])
    if not settings.is_production:
        app.include_router(debug_router, prefix=f"{prefix}/debug", tags=["debug"])


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to their HTTP status and hide unexpected ones."""

    @app.exception_handler(GatehouseError)
    async def gatehouse_exception_handler(request: Request, exc: GatehouseError):
        logger.info(
            "Request refused",
            path=request.url.path,
            method=request.method,
            status_code=exc.status_code,
            error_type=exc.error_type,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
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
                "error": "Internal server error",
                "detail": str(exc)
                if app.state.settings.debug
                else "An unexpected error occurred",
            },
        )


def register_middleware(app: FastAPI) -> None:
    """Register authentication and request logging middleware.

    The logging middleware is declared after the authentication middleware
    so it wraps it and every log line, including refusals, carries the
    request's correlation ID.
    """
    app.add_middleware(AuthenticationMiddleware)

    @app.middleware("http")
    async def logging_middleware(request: Request, call_next):
        """Log each request and propagate its correlation ID."""
        correlation_id = request.headers.get("X-Correlation-ID") or new_correlation_id()
        bind_correlation_id(correlation_id)

        logger.info(
            "Request started",
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
            )
            response.headers["X-Correlation-ID"] = correlation_id
            return response
        finally:
            clear_context()


app = create_app()
