"""FastAPI application configuration and setup.

Main entry point for the HTTP API with CORS, correlation IDs, error
envelopes, and lifecycle management of the hub clients, relays, scheduler
and database.
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hass_gateway import __version__
from hass_gateway.api.routes import api_router, relay_router
from hass_gateway.api.schemas import ErrorBody, ErrorEnvelope
from hass_gateway.exceptions import (
    ConfigurationError,
    GatewayError,
    HAClientError,
    ValidationError,
)
from hass_gateway.ha.rest import HARestClient
from hass_gateway.ha.websocket import HAWebSocketClient
from hass_gateway.logging_config import configure_logging
from hass_gateway.relay import RelayRegistry
from hass_gateway.settings import Settings, get_settings
from hass_gateway.storage import close_db, init_db

# Context variable for correlation ID (async-safe)
_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)

# Singleton app instance
_app: FastAPI | None = None

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    - Startup: verify the database, start the sweep scheduler
    - Shutdown: stop the scheduler, close hub sockets, relays and the database
    """
    settings = get_settings()

    if settings.environment != "testing":
        await init_db()

    scheduler = None
    if settings.scheduler_enabled and settings.environment != "testing":
        from hass_gateway.scheduler import SchedulerService

        scheduler = SchedulerService()
        await scheduler.start()

    yield

    if scheduler:
        await scheduler.stop()
    await app.state.ws_client.close()
    await app.state.rest_client.close()
    await app.state.relays.close_all()
    await close_db()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Optional settings override (uses get_settings() if not provided)

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="hass-gateway",
        description="Proxy in front of a Home Assistant hub",
        version=__version__,
        docs_url="/api/docs" if settings.debug else None,
        redoc_url="/api/redoc" if settings.debug else None,
        openapi_url="/api/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    # One shared duplex client and REST client per application
    app.state.ws_client = HAWebSocketClient.from_settings(settings)
    app.state.rest_client = HARestClient.from_settings(settings)
    app.state.relays = RelayRegistry(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_get_allowed_origins(settings),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add correlation ID middleware (must be before routes)
    app.middleware("http")(_correlation_middleware)

    app.include_router(api_router, prefix="/api/v1")
    app.include_router(relay_router)

    _register_exception_handlers(app)

    return app


def _get_allowed_origins(settings: Settings) -> list[str]:
    """Explicit ALLOWED_ORIGINS when set, otherwise everything outside production."""
    if settings.allowed_origins:
        return [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
    if settings.environment == "production":
        return [settings.ha_url]
    return ["*"]


async def _correlation_middleware(request: Request, call_next):
    """Generate or propagate ``X-Correlation-ID`` for every request."""
    correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
    _correlation_id.set(correlation_id)

    response = await call_next(request)
    response.headers["X-Correlation-ID"] = correlation_id
    return response


def get_correlation_id() -> str | None:
    """Get the current request's correlation ID from context."""
    return _correlation_id.get()


def _error_response(
    status_code: int,
    message: str,
    error_type: str,
    correlation_id: str,
) -> JSONResponse:
    body = ErrorEnvelope(
        error=ErrorBody(
            code=status_code,
            message=message,
            type=error_type,
            correlation_id=correlation_id,
        )
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(),
        headers={"X-Correlation-ID": correlation_id},
    )


def _status_for(exc: GatewayError) -> int:
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, ConfigurationError):
        return 500
    if isinstance(exc, HAClientError):
        return exc.status_code or 502  # Bad Gateway for hub failures
    return 500


def _register_exception_handlers(app: FastAPI) -> None:
    """Map exceptions to the failure envelope."""

    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
        """Handle application errors with correlation ID."""
        settings = get_settings()
        correlation_id = get_correlation_id() or exc.correlation_id
        error_type = exc.__class__.__name__.replace("Error", "_error").lower()
        status_code = _status_for(exc)

        logger.error(
            "gateway_error",
            error_type=error_type,
            path=request.url.path,
            correlation_id=correlation_id,
            exc_info=exc,
        )

        # Sanitize error message for non-debug environments
        message = (
            str(exc) if settings.debug else f"An error occurred. Correlation ID: {correlation_id}"
        )
        return _error_response(status_code, message, error_type, correlation_id)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent format."""
        correlation_id = get_correlation_id() or str(uuid.uuid4())
        return _error_response(exc.status_code, str(exc.detail), "http_error", correlation_id)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        correlation_id = get_correlation_id() or str(uuid.uuid4())
        return _error_response(422, "Invalid request", "validation_error", correlation_id)

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        settings = get_settings()
        correlation_id = get_correlation_id() or str(uuid.uuid4())

        logger.exception(
            "unhandled_exception",
            path=request.url.path,
            correlation_id=correlation_id,
            exc_info=exc,
        )

        detail = str(exc) if settings.debug else "Internal server error"
        return _error_response(500, detail, "internal_error", correlation_id)


def get_app() -> FastAPI:
    """Get or create the singleton FastAPI application."""
    global _app
    if _app is None:
        configure_logging()
        _app = create_app()
    return _app


# For uvicorn: use "hass_gateway.api.main:get_app" with --factory flag,
# or "hass_gateway.api.main:app" which lazily initializes on first access.
def __getattr__(name: str) -> Any:
    """Module-level __getattr__ for lazy app initialization."""
    if name == "app":
        return get_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
