"""
Spotify OAuth utilities.

These helpers build the consent URL and talk to the Spotify Accounts token
endpoint for the authorization-code, refresh and client-credentials grants.
"""

from __future__ import annotations

import base64
import logging
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

import httpx

from musicpulse.core.config import SpotifySettings
from musicpulse.models import TokenRecord, now_ms
from musicpulse.utils.retry import RetryConfig, call_with_retry

logger = logging.getLogger(__name__)


class MissingAuthorizationCodeError(ValueError):
    """Raised when the OAuth callback arrives without a code."""


class SpotifyTokenExchangeError(Exception):
    """Raised when the token endpoint fails or returns an unusable payload."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SpotifyOAuthClient:
    """Exchange authorization codes and refresh tokens against Spotify."""

    AUTH_BASE_URL = "https://accounts.spotify.com/authorize"
    TOKEN_URL = "https://accounts.spotify.com/api/token"

    def __init__(
        self,
        settings: SpotifySettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._settings = settings
        self._transport = transport
        self._clock = clock
        self._app_token: TokenRecord | None = None

    def _basic_auth_header(self) -> str:
        raw = f"{self._settings.client_id}:{self._settings.client_secret}"
        return "Basic " + base64.b64encode(raw.encode("utf-8")).decode("ascii")

    def build_authorization_url(self, state: str) -> str:
        """Construct the Spotify consent URL."""
        params = {
            "client_id": self._settings.client_id,
            "response_type": "code",
            "redirect_uri": self._settings.redirect_uri,
            "scope": " ".join(self._settings.scopes),
            "state": state,
        }
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def _post_token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        headers = {
            "Authorization": self._basic_auth_header(),
            "Content-Type": "application/x-www-form-urlencoded",
        }
        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(self.TOKEN_URL, data=form, headers=headers)
        except httpx.HTTPError as exc:
            raise SpotifyTokenExchangeError(str(exc)) from exc

        if not response.is_success:
            logger.error(
                "Spotify token endpoint returned %s: %s",
                response.status_code,
                response.text,
            )
            raise SpotifyTokenExchangeError(
                f"Token endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            logger.error("Spotify token endpoint returned a non-JSON body: %s", response.text)
            raise SpotifyTokenExchangeError(
                "Token endpoint returned a non-JSON response.",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, dict):
            raise SpotifyTokenExchangeError(
                "Token endpoint returned an unexpected payload.",
                status_code=response.status_code,
            )
        return payload

    def _token_record(
        self,
        payload: Dict[str, Any],
        *,
        issued_at: int,
        refresh_token: Optional[str] = None,
        default_expires_in: Optional[int] = None,
    ) -> TokenRecord:
        access_token = payload.get("access_token")
        expires_in = payload.get("expires_in") or default_expires_in
        if not isinstance(access_token, str) or not access_token or not expires_in:
            raise SpotifyTokenExchangeError("Incomplete token payload returned from Spotify.")
        try:
            lifetime = int(expires_in)
        except (TypeError, ValueError) as exc:
            raise SpotifyTokenExchangeError(
                f"Invalid expires_in in token payload: {expires_in!r}"
            ) from exc

        return TokenRecord.from_lifetime(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or refresh_token,
            expires_in=lifetime,
            issued_at_ms=issued_at,
        )

    async def exchange_authorization_code(self, code: Optional[str]) -> TokenRecord:
        """Exchange an authorization code for a user token record."""
        if not code:
            raise MissingAuthorizationCodeError("Missing authorization code")

        issued_at = self._clock()
        payload = await self._post_token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self._settings.redirect_uri,
            }
        )
        return self._token_record(payload, issued_at=issued_at)

    async def refresh_access_token(self, refresh_token: str) -> TokenRecord:
        """Refresh a user access token, keeping the old refresh token if none is returned."""
        issued_at = self._clock()
        payload = await self._post_token_request(
            {"grant_type": "refresh_token", "refresh_token": refresh_token}
        )
        return self._token_record(payload, issued_at=issued_at, refresh_token=refresh_token)

    async def _request_client_credentials(self) -> TokenRecord:
        issued_at = self._clock()
        payload = await self._post_token_request({"grant_type": "client_credentials"})
        return self._token_record(payload, issued_at=issued_at, default_expires_in=3600)

    async def get_client_credentials_token(
        self, retry_config: RetryConfig | None = None
    ) -> str:
        """Return an app-level access token, renewing it near expiry."""
        if self._app_token is None or not self._app_token.is_valid(self._clock()):
            self._app_token = await call_with_retry(
                self._request_client_credentials,
                retry_config=retry_config
                or RetryConfig(retry_on=(SpotifyTokenExchangeError,)),
            )
            logger.info("Spotify client credentials token obtained")
        return self._app_token.access_token

    def invalidate_client_credentials(self) -> None:
        """Drop the cached app token so the next call requests a new one."""
        self._app_token = None


__all__ = [
    "MissingAuthorizationCodeError",
    "SpotifyOAuthClient",
    "SpotifyTokenExchangeError",
]
