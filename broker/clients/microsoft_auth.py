"""
Microsoft identity platform OAuth utilities.

These helpers build the consent URL and talk to the v2.0 token endpoint for
both the authorization-code and refresh-token grants.
"""

from __future__ import annotations

import logging
from typing import Any, Dict
from urllib.parse import urlencode

import httpx

from broker.core.config import MicrosoftSettings
from broker.core.errors import TransportError, UpstreamAuthError
from broker.models.tokens import TokenGrant

logger = logging.getLogger(__name__)

_TOKEN_FIELDS = frozenset({"access_token", "refresh_token", "id_token"})


class MicrosoftOAuthClient:
    """Build Microsoft authorization URLs and call the token endpoint."""

    def __init__(
        self,
        settings: MicrosoftSettings,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport

    @property
    def token_url(self) -> str:
        return self._settings.token_url

    def resolve_redirect_uri(self, redirect_uri: str | None) -> str:
        return redirect_uri or self._settings.default_redirect_uri

    def build_authorization_url(self, redirect_uri: str | None = None) -> str:
        """Construct the Microsoft consent URL."""
        params = {
            "client_id": self._settings.client_id,
            "response_type": "code",
            "redirect_uri": self.resolve_redirect_uri(redirect_uri),
            "scope": " ".join(self._settings.scopes),
            "prompt": "consent",
        }
        return f"{self._settings.authorize_url}?{urlencode(params)}"

    async def exchange_authorization_code(
        self, code: str, redirect_uri: str | None = None
    ) -> TokenGrant:
        """Exchange an authorization code for an access/refresh token pair."""
        return await self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.resolve_redirect_uri(redirect_uri),
            }
        )

    async def refresh_access_token(
        self, refresh_token: str, redirect_uri: str | None = None
    ) -> TokenGrant:
        """Obtain a new access token using a stored refresh token."""
        return await self._request_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "redirect_uri": self.resolve_redirect_uri(redirect_uri),
            }
        )

    async def _request_token(self, grant: Dict[str, str]) -> TokenGrant:
        payload = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "scope": " ".join(self._settings.scopes),
            **grant,
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self.token_url, data=payload)
        except httpx.TimeoutException as exc:
            raise TransportError(
                f"Timed out calling the token endpoint for {grant['grant_type']}."
            ) from exc
        except httpx.TransportError as exc:
            raise TransportError(f"Token endpoint unreachable: {exc}") from exc

        if not response.is_success:
            body = _error_body(response)
            logger.warning(
                "Token endpoint rejected %s grant with HTTP %s",
                grant["grant_type"],
                response.status_code,
            )
            raise UpstreamAuthError(
                f"Token endpoint returned HTTP {response.status_code}.",
                status_code=response.status_code,
                body=body,
            )

        try:
            token_payload = response.json()
        except ValueError as exc:
            raise UpstreamAuthError(
                "Token endpoint returned a non-JSON success response.",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        if not isinstance(token_payload, dict) or not token_payload.get("access_token"):
            raise UpstreamAuthError(
                "Incomplete token payload returned from Microsoft.",
                status_code=response.status_code,
                body=None,
            )

        expires_in = token_payload.get("expires_in")
        try:
            return TokenGrant(
                access_token=token_payload["access_token"],
                refresh_token=token_payload.get("refresh_token") or None,
                expires_in=float(expires_in) if expires_in is not None else None,
            )
        except (TypeError, ValueError) as exc:
            # pydantic.ValidationError is a ValueError.
            raise UpstreamAuthError(
                "Malformed token payload returned from Microsoft.",
                status_code=response.status_code,
                body=_redacted(token_payload),
            ) from exc


def _redacted(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        key: "[REDACTED]" if key in _TOKEN_FIELDS else value
        for key, value in payload.items()
    }


def _error_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


__all__ = ["MicrosoftOAuthClient"]
