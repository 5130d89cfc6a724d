try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import base64
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from musicpulse.clients.spotify_auth import (
    MissingAuthorizationCodeError,
    SpotifyOAuthClient,
    SpotifyTokenExchangeError,
)
from musicpulse.core.config import SpotifySettings
from musicpulse.utils.retry import RetryConfig

FIXED_NOW_MS = 1_700_000_000_000


class TokenEndpoint:
    """Records token requests and replays queued responses."""

    def __init__(self, *responses: httpx.Response) -> None:
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responses.pop(0)

    def form(self, index: int = -1) -> dict[str, list[str]]:
        return parse_qs(self.requests[index].content.decode("utf-8"))


def _settings() -> SpotifySettings:
    return SpotifySettings(
        SPOTIFY_CLIENT_ID="client",
        SPOTIFY_CLIENT_SECRET="secret",
        SPOTIFY_REDIRECT_URI="https://app.example.com/api/auth/callback",
        SPOTIFY_SCOPES="user-read-private, playlist-read-private",
    )


def _client(endpoint: TokenEndpoint) -> SpotifyOAuthClient:
    return SpotifyOAuthClient(
        _settings(),
        transport=httpx.MockTransport(endpoint),
        clock=lambda: FIXED_NOW_MS,
    )


@pytest.mark.asyncio
async def test_exchange_posts_form_with_basic_auth() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(
            200,
            json={"access_token": "access", "refresh_token": "refresh", "expires_in": 3600},
        )
    )

    record = await _client(endpoint).exchange_authorization_code("auth-code")

    request = endpoint.requests[0]
    expected = base64.b64encode(b"client:secret").decode("ascii")
    assert str(request.url) == SpotifyOAuthClient.TOKEN_URL
    assert request.method == "POST"
    assert request.headers["Authorization"] == f"Basic {expected}"
    assert request.headers["Content-Type"] == "application/x-www-form-urlencoded"
    assert endpoint.form() == {
        "grant_type": ["authorization_code"],
        "code": ["auth-code"],
        "redirect_uri": ["https://app.example.com/api/auth/callback"],
    }
    assert record.access_token == "access"
    assert record.refresh_token == "refresh"
    assert record.expires_at == FIXED_NOW_MS + 3600 * 1000


@pytest.mark.asyncio
@pytest.mark.parametrize("code", ["", None])
async def test_exchange_without_code_makes_no_request(code) -> None:
    endpoint = TokenEndpoint()

    with pytest.raises(MissingAuthorizationCodeError):
        await _client(endpoint).exchange_authorization_code(code)

    assert endpoint.requests == []


@pytest.mark.asyncio
async def test_exchange_failure_raises() -> None:
    endpoint = TokenEndpoint(httpx.Response(400, json={"error": "invalid_grant"}))

    with pytest.raises(SpotifyTokenExchangeError) as excinfo:
        await _client(endpoint).exchange_authorization_code("stale-code")

    assert excinfo.value.status_code == 400
    assert len(endpoint.requests) == 1


@pytest.mark.asyncio
async def test_exchange_network_error_raises() -> None:
    def unreachable(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route to host", request=request)

    client = SpotifyOAuthClient(_settings(), transport=httpx.MockTransport(unreachable))

    with pytest.raises(SpotifyTokenExchangeError):
        await client.exchange_authorization_code("code")


@pytest.mark.asyncio
async def test_refresh_keeps_previous_refresh_token() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(200, json={"access_token": "new-access", "expires_in": 1800})
    )

    record = await _client(endpoint).refresh_access_token("old-refresh")

    assert endpoint.form() == {
        "grant_type": ["refresh_token"],
        "refresh_token": ["old-refresh"],
    }
    assert record.access_token == "new-access"
    assert record.refresh_token == "old-refresh"
    assert record.expires_at == FIXED_NOW_MS + 1800 * 1000


@pytest.mark.asyncio
async def test_client_credentials_token_is_cached() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(200, json={"access_token": "app-token", "expires_in": 3600})
    )
    client = _client(endpoint)

    first = await client.get_client_credentials_token()
    second = await client.get_client_credentials_token()

    assert first == second == "app-token"
    assert len(endpoint.requests) == 1
    assert endpoint.form() == {"grant_type": ["client_credentials"]}


@pytest.mark.asyncio
async def test_client_credentials_retries_on_failure() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(503),
        httpx.Response(200, json={"access_token": "app-token", "expires_in": 3600}),
    )

    token = await _client(endpoint).get_client_credentials_token(
        RetryConfig(attempts=2, backoff_seconds=0, retry_on=(SpotifyTokenExchangeError,))
    )

    assert token == "app-token"
    assert len(endpoint.requests) == 2


def test_authorization_url_contains_scopes_and_state() -> None:
    url = _client(TokenEndpoint()).build_authorization_url(state="abc123")

    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == SpotifyOAuthClient.AUTH_BASE_URL
    assert query["client_id"] == ["client"]
    assert query["response_type"] == ["code"]
    assert query["scope"] == ["user-read-private playlist-read-private"]
    assert query["state"] == ["abc123"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>gateway</html>"),
        httpx.Response(200, json=["access_token", "a"]),
        httpx.Response(200, json={"access_token": "a", "expires_in": "soon"}),
        httpx.Response(200, json={"access_token": "a"}),
    ],
    ids=["non-json", "non-object", "bad-expires-in", "missing-expires-in"],
)
async def test_exchange_unusable_payload_raises_exchange_error(response) -> None:
    endpoint = TokenEndpoint(response)

    with pytest.raises(SpotifyTokenExchangeError):
        await _client(endpoint).exchange_authorization_code("auth-code")


@pytest.mark.asyncio
async def test_refresh_non_json_body_raises_exchange_error() -> None:
    endpoint = TokenEndpoint(httpx.Response(200, text="upstream hiccup"))

    with pytest.raises(SpotifyTokenExchangeError) as excinfo:
        await _client(endpoint).refresh_access_token("old-refresh")

    assert excinfo.value.status_code == 200


@pytest.mark.asyncio
async def test_invalidated_client_credentials_are_requested_again() -> None:
    endpoint = TokenEndpoint(
        httpx.Response(200, json={"access_token": "first", "expires_in": 3600}),
        httpx.Response(200, json={"access_token": "second", "expires_in": 3600}),
    )
    client = _client(endpoint)

    assert await client.get_client_credentials_token() == "first"
    client.invalidate_client_credentials()
    assert await client.get_client_credentials_token() == "second"
    assert len(endpoint.requests) == 2
