"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_document_store,
    get_genre_trends_cache,
    get_genre_trends_service,
    get_insights_cache,
    get_spotify_api_client,
    get_spotify_catalog_client,
    get_spotify_oauth_client,
    get_spotify_session_service,
    get_token_cipher_service,
    get_youtube_client,
    get_youtube_insights_service,
)
from .config import SettingsDependency, get_app_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_document_store",
    "get_genre_trends_cache",
    "get_genre_trends_service",
    "get_insights_cache",
    "get_spotify_api_client",
    "get_spotify_catalog_client",
    "get_spotify_oauth_client",
    "get_spotify_session_service",
    "get_token_cipher_service",
    "get_youtube_client",
    "get_youtube_insights_service",
]
