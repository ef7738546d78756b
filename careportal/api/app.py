"""
FastAPI application for the care platform.

This is the HTTP boundary: the one place auth errors become status codes.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from careportal import __version__
from careportal.auth import auth_router
from careportal.auth.errors import AuthError
from careportal.auth.jwt import TokenService, get_token_service
from careportal.config import get_settings
from careportal.integrations.oauth import OAuthManager
from careportal.resources import resources_router
from careportal.storage import StorageProvider, create_local_storage

logger = logging.getLogger(__name__)


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize and cleanup app resources."""
    settings = get_settings()
    settings.check_secrets()

    from careportal.integrations.sentry import init_sentry
    if init_sentry():
        logger.info("Sentry error tracking enabled")

    logger.info(f"Care portal API starting in {settings.environment} mode")

    yield

    logger.info("Care portal API shutting down")


# =============================================================================
# Error translation
# =============================================================================


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.kind.value},
        headers=headers,
    )


async def server_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"detail": "Server error", "code": "server_error"})


# =============================================================================
# App Setup
# =============================================================================


def create_app(
    storage: StorageProvider | None = None,
    tokens: TokenService | None = None,
    oauth: OAuthManager | None = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators default to in-memory storage, the settings-driven token
    service, and the global OAuth manager.
    """
    settings = get_settings()

    app = FastAPI(
        title="Care Portal API",
        description="Identity, sessions and access control for the care platform",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.storage = storage or create_local_storage()
    app.state.tokens = tokens or get_token_service()
    app.state.oauth = oauth

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(Exception, server_error_handler)

    app.include_router(auth_router)
    app.include_router(resources_router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "service": "careportal-api"}

    return app


app = create_app()
