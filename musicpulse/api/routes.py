"""
FastAPI routes for the music insights backend.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Awaitable, Callable, MutableMapping

import httpx
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from musicpulse.clients.spotify_auth import (
    MissingAuthorizationCodeError,
    SpotifyTokenExchangeError,
)
from musicpulse.dependencies import (
    get_app_settings,
    get_genre_trends_service,
    get_spotify_api_client,
    get_spotify_session_service,
    get_youtube_insights_service,
)
from musicpulse.schemas import AuthError, AuthResult, AuthStatus, utc_timestamp
from musicpulse.services.spotify_session import (
    InvalidOAuthStateError,
    SpotifyTokenNotFoundError,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _error_response(
    status_code: int, error: str, exc: Exception | None, settings: Any
) -> JSONResponse:
    details = str(exc) if exc is not None and settings.expose_error_details else None
    payload = AuthError(error=error, details=details)
    return JSONResponse(
        status_code=status_code, content=payload.model_dump(exclude_none=True)
    )


def _upstream_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"error": response.text or "Unknown error"}


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(
    request: Request,
    settings: Annotated[Any, Depends(get_app_settings)],
    session_service: Annotated[Any, Depends(get_spotify_session_service)],
) -> dict:
    """Health endpoint reporting which upstream APIs are configured."""
    return {
        "status": "ok",
        "environment": settings.environment.value,
        "apis": {
            "youtube": bool(settings.youtube.api_key),
            "spotify": bool(
                settings.spotify.client_id and settings.spotify.client_secret
            ),
        },
        "spotify": {"authenticated": session_service.is_authenticated(request.session)},
        "timestamp": utc_timestamp(),
    }


@router.get("/youtube-insights")
async def youtube_insights(
    service: Annotated[Any, Depends(get_youtube_insights_service)],
) -> JSONResponse:
    """Trending music insights, served from cache when fresh."""
    outcome = await service.handle()
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.get("/trending-genres")
async def trending_genres(
    service: Annotated[Any, Depends(get_genre_trends_service)],
) -> JSONResponse:
    """Top genres and mood of the featured Spotify playlist, cached for an hour."""
    outcome = await service.handle()
    return JSONResponse(status_code=outcome.status_code, content=outcome.body)


@router.get("/auth/spotify/login")
async def spotify_login(
    request: Request,
    session_service: Annotated[Any, Depends(get_spotify_session_service)],
) -> RedirectResponse:
    """Redirect the browser to the Spotify consent screen."""
    authorization_url = session_service.begin_login(request.session)
    return RedirectResponse(
        url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT
    )


@router.get("/auth/callback")
async def spotify_callback(
    request: Request,
    session_service: Annotated[Any, Depends(get_spotify_session_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: str | None = Query(default=None, description="Authorization code from Spotify."),
    state: str | None = Query(default=None, description="State issued at login."),
) -> JSONResponse:
    """Exchange the authorization code and keep the tokens in the session."""
    try:
        await session_service.complete_login(request.session, code, state)
    except MissingAuthorizationCodeError:
        logger.error("Spotify callback without authorization code")
        return _error_response(
            HTTPStatus.BAD_REQUEST, "Missing authorization code", None, settings
        )
    except InvalidOAuthStateError as exc:
        logger.error("Spotify callback with mismatched state")
        return _error_response(
            HTTPStatus.BAD_REQUEST, "Invalid OAuth state", exc, settings
        )
    except SpotifyTokenExchangeError as exc:
        logger.error("Spotify token exchange failed: %s", exc)
        return _error_response(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "Failed to exchange authorization code for tokens",
            exc,
            settings,
        )

    return JSONResponse(
        content=AuthResult(message="Authentication successful").model_dump()
    )


@router.get("/auth/spotify/refresh")
async def spotify_refresh(
    request: Request,
    session_service: Annotated[Any, Depends(get_spotify_session_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
) -> JSONResponse:
    try:
        await session_service.refresh(request.session)
    except (SpotifyTokenNotFoundError, SpotifyTokenExchangeError) as exc:
        logger.error("Spotify token refresh failed: %s", exc)
        return _error_response(
            HTTPStatus.UNAUTHORIZED, "Failed to refresh token", exc, settings
        )

    return JSONResponse(
        content=AuthResult(message="Token refreshed successfully").model_dump()
    )


@router.get("/auth/spotify/status", response_model=AuthStatus)
async def spotify_status(
    request: Request,
    session_service: Annotated[Any, Depends(get_spotify_session_service)],
) -> AuthStatus:
    return AuthStatus(authenticated=session_service.is_authenticated(request.session))


SpotifyCall = Callable[[MutableMapping[str, Any]], Awaitable[httpx.Response]]


async def _proxy_spotify(
    request: Request, call: SpotifyCall, *, key: str, failure: str
) -> JSONResponse:
    try:
        response = await call(request.session)
    except (SpotifyTokenNotFoundError, SpotifyTokenExchangeError) as exc:
        logger.warning("Spotify request rejected: %s", exc)
        return JSONResponse(
            status_code=HTTPStatus.UNAUTHORIZED,
            content={"error": "Not authenticated with Spotify"},
        )
    except httpx.HTTPError as exc:
        logger.error("%s: %s", failure, exc)
        return JSONResponse(
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR, content={"error": failure}
        )

    body = _upstream_body(response)
    if not response.is_success:
        logger.error("%s: HTTP %s %s", failure, response.status_code, body)
        return JSONResponse(status_code=response.status_code, content=body)
    return JSONResponse(content={"success": True, key: body})


@router.get("/spotify/profile")
async def spotify_profile(
    request: Request,
    api_client: Annotated[Any, Depends(get_spotify_api_client)],
) -> JSONResponse:
    """The signed-in user's Spotify profile."""
    return await _proxy_spotify(
        request,
        api_client.get_profile,
        key="profile",
        failure="Failed to fetch Spotify profile",
    )


@router.get("/spotify/playlists")
async def spotify_playlists(
    request: Request,
    api_client: Annotated[Any, Depends(get_spotify_api_client)],
    limit: int = Query(default=20, ge=1, le=50),
    offset: int = Query(default=0, ge=0),
) -> JSONResponse:
    async def _call(session: MutableMapping[str, Any]) -> httpx.Response:
        return await api_client.get_playlists(session, limit=limit, offset=offset)

    return await _proxy_spotify(
        request, _call, key="playlists", failure="Failed to fetch Spotify playlists"
    )
