"""
Session-scoped Spotify token management.

Token records live in the Starlette session under ``spotify_tokens``. Each
successful exchange or refresh supersedes the previous record; nothing is
persisted server-side.
"""

from __future__ import annotations

import hmac
import logging
import secrets
from typing import Any, Callable, MutableMapping, Optional

from musicpulse.clients.spotify_auth import (
    MissingAuthorizationCodeError,
    SpotifyOAuthClient,
)
from musicpulse.models import TokenRecord, now_ms
from musicpulse.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

Session = MutableMapping[str, Any]


class SpotifyTokenNotFoundError(Exception):
    """Raised when the session holds no usable Spotify token."""


class InvalidOAuthStateError(Exception):
    """Raised when the callback state does not match the one issued at login."""


class SpotifySessionService:
    SESSION_KEY = "spotify_tokens"
    STATE_KEY = "spotify_oauth_state"

    def __init__(
        self,
        oauth_client: SpotifyOAuthClient,
        token_cipher: TokenCipherService,
        *,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._oauth = oauth_client
        self._cipher = token_cipher
        self._clock = clock

    def begin_login(self, session: Session) -> str:
        """Issue a state nonce and return the consent URL."""
        state = secrets.token_hex(16)
        session[self.STATE_KEY] = state
        return self._oauth.build_authorization_url(state=state)

    async def complete_login(
        self, session: Session, code: Optional[str], state: Optional[str] = None
    ) -> TokenRecord:
        """Exchange ``code`` and store the resulting tokens in ``session``."""
        if not code:
            raise MissingAuthorizationCodeError("Missing authorization code")

        expected_state = session.pop(self.STATE_KEY, None)
        if expected_state is not None and not hmac.compare_digest(
            expected_state, state or ""
        ):
            raise InvalidOAuthStateError("OAuth state mismatch.")

        logger.info("Exchanging Spotify authorization code for tokens")
        record = await self._oauth.exchange_authorization_code(code)
        self.store(session, record)
        logger.info("Spotify user tokens stored in session")
        return record

    def store(self, session: Session, record: TokenRecord) -> None:
        session[self.SESSION_KEY] = self._cipher.seal(record)

    def load(self, session: Session) -> Optional[TokenRecord]:
        sealed = session.get(self.SESSION_KEY)
        if not sealed:
            return None
        try:
            return self._cipher.unseal(sealed)
        except ValueError:
            logger.warning("Discarding unreadable Spotify token record from session")
            session.pop(self.SESSION_KEY, None)
            return None

    async def refresh(self, session: Session) -> TokenRecord:
        """Refresh the session's access token using its refresh token."""
        current = self.load(session)
        if current is None or not current.refresh_token:
            raise SpotifyTokenNotFoundError("No refresh token available")

        record = await self._oauth.refresh_access_token(current.refresh_token)
        self.store(session, record)
        logger.info("Spotify access token refreshed")
        return record

    def is_authenticated(self, session: Session) -> bool:
        record = self.load(session)
        return record is not None and record.is_valid(self._clock())


__all__ = [
    "InvalidOAuthStateError",
    "SpotifySessionService",
    "SpotifyTokenNotFoundError",
]
