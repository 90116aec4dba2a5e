"""
Domain models for OAuth token persistence.
"""

from __future__ import annotations

import re
import time
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

TENANT_KEY_PREFIX = "ms_tokens"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def _clean(value: str) -> str:
    return _UNSAFE_CHARS.sub("_", value).lower()


def tenant_key(environment: str, organization_id: str) -> str:
    """
    Derive the storage key for an environment/organization pair.

    Characters outside ``[A-Za-z0-9_-]`` become ``_`` and the result is
    lower-cased, so ``("Prod", "00D.x")`` and ``("prod", "00d!x")`` share a key.
    """
    return f"{TENANT_KEY_PREFIX}_{_clean(environment)}_{_clean(organization_id)}"


def now_ms() -> int:
    return int(time.time() * 1000)


class TokenRecord(BaseModel):
    """Access/refresh token pair for one tenant with its absolute expiry."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str = Field(..., alias="accessToken")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")
    expires_at: Optional[int] = Field(
        None,
        alias="expiryDate",
        description="Expiry as epoch milliseconds; absent means already expired.",
    )

    @classmethod
    def issued(
        cls,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_in: Optional[float] = None,
        *,
        issued_at_ms: Optional[int] = None,
    ) -> "TokenRecord":
        """Build a record whose expiry is ``expires_in`` seconds after issue."""
        expires_at = None
        if expires_in is not None:
            base = now_ms() if issued_at_ms is None else issued_at_ms
            expires_at = base + int(float(expires_in) * 1000)
        return cls(
            access_token=access_token,
            refresh_token=refresh_token or None,
            expires_at=expires_at,
        )

    @property
    def expires_at_iso(self) -> Optional[str]:
        if self.expires_at is None:
            return None
        moment = datetime.fromtimestamp(self.expires_at / 1000, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def is_stale(self, *, now: int, skew_ms: int) -> bool:
        """True once ``now`` is within ``skew_ms`` of expiry, or expiry is unknown."""
        if self.expires_at is None:
            return True
        return now + skew_ms >= self.expires_at

    @property
    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def to_payload(self) -> dict[str, Any]:
        """Persisted shape of the record."""
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiryDate": self.expires_at,
            "expiryDateReadable": self.expires_at_iso,
        }


class TokenGrant(BaseModel):
    """Successful response from the OAuth token endpoint."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[float] = None


__all__ = ["TENANT_KEY_PREFIX", "TokenGrant", "TokenRecord", "now_ms", "tenant_key"]
