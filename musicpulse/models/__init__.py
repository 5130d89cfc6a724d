"""Domain model exports."""

from .insights import (
    INSIGHTS_SOURCE,
    TOP_VIDEO_LIMIT,
    InsightsDocument,
    TrendSummary,
    VideoMetrics,
    VideoRecord,
)
from .oauth import TOKEN_REFRESH_BUFFER_MS, TokenRecord, now_ms
from .trends import (
    DEFAULT_GENRE,
    TOP_GENRE_LIMIT,
    GenreShare,
    GenreTrends,
    MoodProfile,
    TrendsDocument,
)

__all__ = [
    "DEFAULT_GENRE",
    "GenreShare",
    "GenreTrends",
    "INSIGHTS_SOURCE",
    "InsightsDocument",
    "MoodProfile",
    "TOKEN_REFRESH_BUFFER_MS",
    "TOP_GENRE_LIMIT",
    "TOP_VIDEO_LIMIT",
    "TokenRecord",
    "TrendSummary",
    "TrendsDocument",
    "VideoMetrics",
    "VideoRecord",
    "now_ms",
]
