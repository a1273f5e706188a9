"""
FastAPI Relay Application Factory
=================================

This is the main entry point for the relay service that sits between the
browser game and Kick.

Architecture:
    Browser Game → Relay (this service) → Kick OAuth / API / emote CDN

Routers:
    - /oauth/*          : Authorization URL and code exchange
    - /api/user         : Current-user lookup with endpoint fallback
    - /proxy/emote/*    : Emote image relay
    - /health, /, /test : Diagnostics

Environment Variables:
    - KICK_CLIENT_ID: Kick OAuth client ID (or CENTRAL_CLIENT_ID)
    - KICK_CLIENT_SECRET: Kick OAuth client secret (or CENTRAL_CLIENT_SECRET)
    - KICK_TOKEN_URL / KICK_OAUTH_BASE_URL / KICK_API_BASE_URL: Upstream endpoints
    - ALLOWED_ORIGINS: Comma-separated CORS origins
    - PORT: Listening port (default: 3001)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn relay.app.main:app --reload --host 0.0.0.0 --port 3001

    Production:
        kick-relay
"""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import oauth_router, user_router
from .config import Settings, get_settings, log_configuration
from .errors import RelayError
from .models import HealthResponse
from .proxy import proxy_router

SERVICE_NAME = "Drop Game OAuth Proxy Server"

logger = logging.getLogger("relay.main")


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


# Application state singletons
class AppState:
    """
    Per-application state container.

    Holds the shared upstream HTTP client. Nothing here is mutated by
    request handlers.
    """
    def __init__(self):
        self.http_client: Optional[httpx.AsyncClient] = None


# Lifespan context manager for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Configure logging
        - Log the configuration summary (warns when the secret is missing)
        - Open the shared upstream HTTP client

    Shutdown tasks:
        - Close the upstream HTTP client
    """
    settings: Settings = app.state.settings
    app_state: AppState = app.state.app_state

    setup_logging(settings.LOG_LEVEL)

    log_configuration(settings, logger)

    app_state.http_client = httpx.AsyncClient(
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
        follow_redirects=True,
    )

    logger.info(
        "OAuth relay started",
        extra={"port": settings.PORT, "environment": settings.ENVIRONMENT}
    )

    yield

    logger.info("Shutting down OAuth relay")

    if app_state.http_client:
        await app_state.http_client.aclose()
        app_state.http_client = None

    logger.info("OAuth relay shutdown complete")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# Create FastAPI application
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Injected settings (environment settings when none are given)
        - Lifespan management
        - CORS middleware
        - Route handlers
        - Exception handlers

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Kick OAuth Relay",
        description="OAuth exchange, user lookup and emote relay for the browser game",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.app_state = AppState()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept"],
    )

    app.include_router(oauth_router)
    app.include_router(user_router)
    app.include_router(proxy_router)

    # Health check endpoint
    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        """
        Health check endpoint.

        Reports whether the client credentials are configured.
        """
        return HealthResponse(
            status="ok",
            timestamp=_utc_now(),
            client_id_configured=settings.client_id_configured,
            client_secret_configured=settings.client_secret_configured,
            config_valid=settings.credentials_configured,
            environment=settings.ENVIRONMENT,
        )

    # Root endpoint
    @app.get("/", tags=["System"])
    async def root() -> Dict[str, Any]:
        """
        Root endpoint with service information.

        Returns:
            dict: Service metadata and available endpoints
        """
        return {
            "message": SERVICE_NAME,
            "status": "running",
            "endpoints": {
                "health": "/health",
                "test": "/test",
                "oauth_authorize": "/oauth/authorize",
                "oauth_exchange": "/oauth/exchange",
                "user": "/api/user",
                "emote_proxy": "/proxy/emote/{emote_id}",
            },
            "config_valid": settings.credentials_configured,
        }

    # CORS debugging endpoint
    @app.get("/test", tags=["System"])
    async def cors_test(request: Request) -> Dict[str, Any]:
        """Echo request headers so CORS problems can be diagnosed from the browser."""
        return {
            "message": "CORS test successful",
            "timestamp": _utc_now().isoformat(),
            "origin": request.headers.get("origin"),
            "headers": dict(request.headers),
        }

    register_exception_handlers(app, settings)

    return app


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Map relay, validation, routing and unexpected errors to JSON bodies."""

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request body",
                "details": jsonable_encoder(exc.errors()),
            },
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        error = "Not found" if exc.status_code == 404 else exc.detail
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": error,
                "path": request.url.path,
                "method": request.method,
            },
            headers=getattr(exc, "headers", None),
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "details": str(exc) if settings.LOG_LEVEL == "DEBUG" else None
            }
        )


# Create app instance for uvicorn
app = create_app()


def run() -> None:
    """Start the relay with uvicorn on the configured host and port."""
    settings = get_settings()

    uvicorn.run(
        "relay.app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
