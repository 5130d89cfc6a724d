"""
FastAPI application entrypoint for the music insights backend.
"""

from __future__ import annotations

import logging
import secrets
import time
import uuid
from contextlib import asynccontextmanager
from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from musicpulse.api.routes import router as api_router
from musicpulse.clients.spotify_auth import SpotifyTokenExchangeError
from musicpulse.core.config import AppEnvironment, AppSettings, get_settings
from musicpulse.core.logging import configure_logging
from musicpulse.dependencies import get_document_store, get_spotify_oauth_client
from musicpulse.schemas import utc_timestamp

logger = logging.getLogger(__name__)


def _build_lifespan(settings: AppSettings):
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        init = get_document_store()
        if not init.ok:
            logger.warning("Insights cache disabled: %s", init.error)
        if settings.spotify.warm_up_on_startup:
            try:
                await get_spotify_oauth_client().get_client_credentials_token()
                logger.info("Spotify authentication initialised")
            except SpotifyTokenExchangeError as exc:
                logger.error("Spotify authentication failed at startup: %s", exc)
        logger.info("Environment: %s", settings.environment.value)
        yield

    return lifespan


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="musicpulse",
        version="0.1.0",
        description="Caching proxy for YouTube trends and Spotify account access.",
        lifespan=_build_lifespan(settings),
    )

    production = settings.environment is AppEnvironment.PRODUCTION
    app.add_middleware(
        SessionMiddleware,
        secret_key=settings.security.session_secret or secrets.token_hex(32),
        max_age=settings.security.session_max_age_seconds,
        same_site="strict" if production else "lax",
        https_only=production,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = uuid.uuid4().hex[:7]
        started = time.perf_counter()
        logger.info("[%s] %s %s", request_id, request.method, request.url.path)
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            "[%s] %s (%.0fms)", request_id, response.status_code, elapsed_ms
        )
        return response

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": "Internal Server Error",
                "message": str(exc)
                if settings.expose_error_details
                else "An unexpected error occurred",
                "timestamp": utc_timestamp(),
            },
        )

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
