"""FastAPI application factory and configuration."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from kleinanzeigen_session import __version__
from kleinanzeigen_session.api.dependencies import (
    cleanup_session_service,
    get_session_service,
)
from kleinanzeigen_session.api.routes import (
    auth_router,
    cookies_router,
    health_router,
    tokens_router,
)
from kleinanzeigen_session.api.schemas import ErrorResponse
from kleinanzeigen_session.utils.config import get_settings
from kleinanzeigen_session.utils.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager."""
    settings = get_settings()
    logger.info(
        "Starting Kleinanzeigen Session API",
        version=__version__,
        env=settings.env,
        debug=settings.debug,
    )

    security_warnings = settings.get_security_warnings()
    if security_warnings:
        logger.warning(
            "SECURITY WARNINGS DETECTED",
            environment=settings.env,
            warnings=security_warnings,
        )

    if settings.refresh.auto_start:
        service = await get_session_service()
        service.scheduler.start(settings.refresh.interval_hours)

    yield

    logger.info("Shutting down Kleinanzeigen Session API")
    await cleanup_session_service()


def setup_cors(app: FastAPI) -> None:
    """Setup CORS middleware based on configuration."""
    cors_config = get_settings().cors

    if not cors_config.enabled:
        logger.info("CORS is DISABLED")
        return

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config.get_origins_list(),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    logger.info("CORS ENABLED", origins=cors_config.allow_origins)


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    settings = get_settings()

    auth_info = (
        "**Required** - Pass API key via `X-API-Key` header"
        if settings.auth.auth_enabled
        else "No authentication required (development mode)"
    )

    app = FastAPI(
        title="Kleinanzeigen Session API",
        description=f"""
## Session lifecycle for Kleinanzeigen accounts

### Features
- **Auth**: Log accounts in, reusing stored cookies where possible
- **Cookies**: Inspect, test, clean up and refresh stored sessions
- **Tokens**: Access/refresh token expiry per account

### Authentication
{auth_info}

### Environment
Running in **{settings.env}** mode.
        """,
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
        debug=settings.debug,
    )

    setup_cors(app)

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        _request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        """Render HTTP errors in the response envelope."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(message=str(exc.detail)).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        _request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle uncaught exceptions."""
        logger.error("Unhandled exception", error=str(exc), exc_info=True)
        if settings.is_production and not settings.debug:
            message = "An unexpected error occurred"
        else:
            message = str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(message=message).model_dump(),
        )

    app.include_router(auth_router)
    app.include_router(cookies_router)
    app.include_router(tokens_router)
    app.include_router(health_router)

    return app


# Application instance
app = create_app()
