"""Expose constructed client wrappers."""

from .document_store import (
    DocumentStore,
    DynamoDBDocumentStore,
    SQLiteDocumentStore,
    StoreInitResult,
    initialize_document_store,
)
from .spotify_api import SpotifyWebAPIClient
from .spotify_auth import (
    MissingAuthorizationCodeError,
    SpotifyOAuthClient,
    SpotifyTokenExchangeError,
)
from .spotify_catalog import SpotifyAPIError, SpotifyCatalogClient
from .youtube import YouTubeClient

__all__ = [
    "DocumentStore",
    "DynamoDBDocumentStore",
    "MissingAuthorizationCodeError",
    "SQLiteDocumentStore",
    "SpotifyAPIError",
    "SpotifyCatalogClient",
    "SpotifyOAuthClient",
    "SpotifyTokenExchangeError",
    "SpotifyWebAPIClient",
    "StoreInitResult",
    "YouTubeClient",
    "initialize_document_store",
]
