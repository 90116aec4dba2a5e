"""Error taxonomy for the token lifecycle.

Every failure surfaced by the token manager carries a ``kind`` so callers can
decide between prompting re-authorization and retrying without parsing
message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class TokenErrorKind(str, Enum):
    CREDENTIAL_NOT_FOUND = "credential_not_found"
    REFRESH_UNAVAILABLE = "refresh_unavailable"
    UPSTREAM_AUTH_ERROR = "upstream_auth_error"
    INTEGRITY_ERROR = "integrity_error"
    TRANSPORT_ERROR = "transport_error"
    STORE_ERROR = "store_error"


class TokenError(Exception):
    """Base class for token lifecycle failures."""

    kind: TokenErrorKind
    retryable = False

    def __init__(self, message: str, *, tenant: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.tenant = tenant

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind.value, "detail": self.message}


class CredentialNotFound(TokenError):
    """No token record is stored for the tenant."""

    kind = TokenErrorKind.CREDENTIAL_NOT_FOUND


class RefreshUnavailable(TokenError):
    """The stored record is stale and has no refresh token to renew it with."""

    kind = TokenErrorKind.REFRESH_UNAVAILABLE


class UpstreamAuthError(TokenError):
    """The OAuth token endpoint rejected the request."""

    kind = TokenErrorKind.UPSTREAM_AUTH_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: Any = None,
        tenant: str | None = None,
    ) -> None:
        super().__init__(message, tenant=tenant)
        self.status_code = status_code
        self.body = body

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["upstream"] = self.body
        return payload


class IntegrityError(TokenError):
    """Ciphertext failed authentication or decoded to an unreadable record."""

    kind = TokenErrorKind.INTEGRITY_ERROR


class TransportError(TokenError):
    """Network failure or timeout talking to the store or the token endpoint."""

    kind = TokenErrorKind.TRANSPORT_ERROR
    retryable = True


class StoreError(TokenError):
    """The secret store refused the request, e.g. access denied or a KMS failure."""

    kind = TokenErrorKind.STORE_ERROR


class SecretNotFoundError(Exception):
    """Raised by secret store adapters when a secret has no versions."""


__all__ = [
    "CredentialNotFound",
    "IntegrityError",
    "RefreshUnavailable",
    "SecretNotFoundError",
    "StoreError",
    "TokenError",
    "TokenErrorKind",
    "TransportError",
    "UpstreamAuthError",
]
