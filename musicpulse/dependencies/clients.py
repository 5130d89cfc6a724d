"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from musicpulse.clients import (
    SpotifyAPIError,
    SpotifyCatalogClient,
    SpotifyOAuthClient,
    SpotifyTokenExchangeError,
    SpotifyWebAPIClient,
    StoreInitResult,
    YouTubeClient,
    initialize_document_store,
)
from musicpulse.core.config import get_settings
from musicpulse.services import (
    GenreTrendsCache,
    GenreTrendsService,
    InsightsCache,
    SpotifySessionService,
    TokenCipherService,
    YouTubeInsightsService,
)
from musicpulse.services.genre_trends import NoTracksError
from musicpulse.utils.retry import RetryConfig


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_document_store() -> StoreInitResult:
    """Initialise the configured document store once per process."""
    return initialize_document_store(_settings().store)


@lru_cache()
def get_insights_cache() -> InsightsCache:
    settings = _settings()
    init = get_document_store()
    return InsightsCache(
        init.store,
        collection=settings.cache.collection,
        ttl_ms=settings.cache.ttl_ms,
        unavailable_reason=init.error,
    )


@lru_cache()
def get_genre_trends_cache() -> GenreTrendsCache:
    settings = _settings()
    init = get_document_store()
    return GenreTrendsCache(
        init.store,
        collection=settings.cache.trends_collection,
        ttl_ms=settings.cache.trends_ttl_ms,
        unavailable_reason=init.error,
    )


@lru_cache()
def get_youtube_client() -> YouTubeClient:
    return YouTubeClient(_settings().youtube)


def get_youtube_insights_service() -> YouTubeInsightsService:
    """Build the insights orchestrator from the shared cache and provider."""
    return YouTubeInsightsService(
        provider=get_youtube_client(),
        cache=get_insights_cache(),
        expose_error_details=_settings().expose_error_details,
    )


@lru_cache()
def get_spotify_oauth_client() -> SpotifyOAuthClient:
    """Create a singleton Spotify OAuth client."""
    return SpotifyOAuthClient(_settings().spotify)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for session tokens."""
    settings = _settings()
    secret = (
        settings.security.token_encryption_secret
        or settings.security.session_secret
        or settings.spotify.client_secret
    )
    return TokenCipherService(secret=secret)


@lru_cache()
def get_spotify_catalog_client() -> SpotifyCatalogClient:
    return SpotifyCatalogClient(get_spotify_oauth_client(), _settings().spotify)


def get_genre_trends_service() -> GenreTrendsService:
    """Build the trending-genres service on the app-token catalog client."""
    settings = _settings()
    return GenreTrendsService(
        catalog=get_spotify_catalog_client(),
        cache=get_genre_trends_cache(),
        retry_config=RetryConfig(
            attempts=settings.spotify.max_attempts,
            backoff_seconds=settings.spotify.retry_delay_seconds,
            retry_on=(SpotifyAPIError, SpotifyTokenExchangeError, NoTracksError),
        ),
        expose_error_details=settings.expose_error_details,
    )


def get_spotify_session_service() -> SpotifySessionService:
    return SpotifySessionService(
        oauth_client=get_spotify_oauth_client(),
        token_cipher=get_token_cipher_service(),
    )


def get_spotify_api_client() -> SpotifyWebAPIClient:
    return SpotifyWebAPIClient(get_spotify_session_service())


__all__ = [
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
