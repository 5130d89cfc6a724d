"""Service layer exports."""

from .genre_trends import GenreTrendsService, TrendsOutcome, analyze_trends
from .insights_cache import CacheError, CacheResult, GenreTrendsCache, InsightsCache
from .spotify_session import (
    InvalidOAuthStateError,
    SpotifySessionService,
    SpotifyTokenNotFoundError,
)
from .token_cipher import TokenCipherService
from .youtube_insights import (
    InsightsOutcome,
    ProviderConfigurationError,
    ProviderDataError,
    YouTubeInsightsService,
    build_insights_document,
)

__all__ = [
    "CacheError",
    "CacheResult",
    "GenreTrendsCache",
    "GenreTrendsService",
    "InsightsCache",
    "InsightsOutcome",
    "InvalidOAuthStateError",
    "ProviderConfigurationError",
    "ProviderDataError",
    "SpotifySessionService",
    "SpotifyTokenNotFoundError",
    "TokenCipherService",
    "TrendsOutcome",
    "YouTubeInsightsService",
    "analyze_trends",
    "build_insights_document",
]
