"""
Domain models for the Spotify trending-genres snapshot.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

TOP_GENRE_LIMIT = 10
DEFAULT_GENRE = "Pop"


class GenreShare(BaseModel):
    name: str
    count: int
    percentage: float


class MoodProfile(BaseModel):
    """Mean audio features across the sampled tracks."""

    danceability: float = 0.0
    energy: float = 0.0
    valence: float = 0.0


class GenreTrends(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    top_genres: list[GenreShare] = Field(default_factory=list, alias="topGenres")
    mood: MoodProfile = Field(default_factory=MoodProfile)


class TrendsDocument(BaseModel):
    """Cached genre trends; ``timestamp`` is epoch milliseconds."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    data: GenreTrends
    timestamp: int

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


__all__ = [
    "DEFAULT_GENRE",
    "GenreShare",
    "GenreTrends",
    "MoodProfile",
    "TOP_GENRE_LIMIT",
    "TrendsDocument",
]
