from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from broker.clients.microsoft_auth import MicrosoftOAuthClient
from broker.core.config import MicrosoftSettings
from broker.core.errors import TransportError, UpstreamAuthError


def _settings() -> MicrosoftSettings:
    return MicrosoftSettings(
        MS_CLIENT_ID="client-123",
        MS_CLIENT_SECRET="shh",
        MS_TENANT="common",
        DEFAULT_REDIRECT_URI="https://broker.example.com/callback",
        MS_SCOPES="Files.ReadWrite.All,offline_access",
    )


def _client(handler) -> MicrosoftOAuthClient:
    return MicrosoftOAuthClient(_settings(), transport=httpx.MockTransport(handler))


def test_authorization_url_includes_consent_parameters() -> None:
    client = MicrosoftOAuthClient(_settings())

    url = urlparse(client.build_authorization_url())
    query = parse_qs(url.query)

    assert url.netloc == "login.microsoftonline.com"
    assert url.path == "/common/oauth2/v2.0/authorize"
    assert query["client_id"] == ["client-123"]
    assert query["response_type"] == ["code"]
    assert query["redirect_uri"] == ["https://broker.example.com/callback"]
    assert query["scope"] == ["Files.ReadWrite.All offline_access"]
    assert query["prompt"] == ["consent"]


def test_authorization_url_honours_custom_redirect() -> None:
    client = MicrosoftOAuthClient(_settings())

    query = parse_qs(urlparse(client.build_authorization_url("https://app/cb")).query)

    assert query["redirect_uri"] == ["https://app/cb"]


@pytest.mark.asyncio
async def test_refresh_posts_form_and_parses_grant() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(
            200,
            json={"access_token": "AT2", "refresh_token": "RT2", "expires_in": 3599},
        )

    grant = await _client(handler).refresh_access_token("RT1")

    assert seen["url"] == "https://login.microsoftonline.com/common/oauth2/v2.0/token"
    assert seen["form"]["grant_type"] == ["refresh_token"]
    assert seen["form"]["refresh_token"] == ["RT1"]
    assert seen["form"]["client_id"] == ["client-123"]
    assert seen["form"]["client_secret"] == ["shh"]
    assert seen["form"]["redirect_uri"] == ["https://broker.example.com/callback"]
    assert grant.access_token == "AT2"
    assert grant.refresh_token == "RT2"
    assert grant.expires_in == 3599


@pytest.mark.asyncio
async def test_exchange_code_without_rotated_refresh_token() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["abc"]
        return httpx.Response(200, json={"access_token": "AT1", "expires_in": "60"})

    grant = await _client(handler).exchange_authorization_code("abc", "https://app/cb")

    assert grant.refresh_token is None
    assert grant.expires_in == 60.0


@pytest.mark.asyncio
async def test_rejection_carries_upstream_body() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400, json={"error": "invalid_grant", "error_description": "expired"}
        )

    with pytest.raises(UpstreamAuthError) as exc_info:
        await _client(handler).refresh_access_token("RT1")

    assert exc_info.value.status_code == 400
    assert exc_info.value.body["error"] == "invalid_grant"
    assert exc_info.value.to_dict()["upstream"]["error_description"] == "expired"


@pytest.mark.asyncio
async def test_success_without_access_token_is_rejected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"token_type": "Bearer"})

    with pytest.raises(UpstreamAuthError):
        await _client(handler).refresh_access_token("RT1")


@pytest.mark.asyncio
async def test_timeout_maps_to_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(TransportError) as exc_info:
        await _client(handler).refresh_access_token("RT1")

    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_connection_failure_maps_to_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(TransportError):
        await _client(handler).exchange_authorization_code("abc")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {"access_token": "AT1", "expires_in": "soon"},
        {"access_token": "AT1", "expires_in": {"seconds": 60}},
        {"access_token": ["AT1"], "expires_in": 60},
    ],
)
async def test_malformed_grant_is_an_upstream_error(payload: dict) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payload)

    with pytest.raises(UpstreamAuthError) as exc_info:
        await _client(handler).refresh_access_token("RT1")

    assert "Malformed" in exc_info.value.message
    assert exc_info.value.body["access_token"] == "[REDACTED]"
