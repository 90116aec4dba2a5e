"""Issue and verify the signed API keys that gate protected routes."""

from __future__ import annotations

import hmac
import time
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional

import jwt

ALGORITHM = "HS256"


class ApiKeyError(Exception):
    """Raised when an API key cannot be verified."""


class ApiKeyService:
    """Stateless HS256 bearer tokens signed with a process-wide secret."""

    def __init__(
        self,
        *,
        secret: str,
        ttl: Optional[timedelta] = None,
        main_key: Optional[str] = None,
    ) -> None:
        if not secret:
            raise ValueError("API key signing secret must be provided.")
        self._secret = secret
        self._ttl = ttl
        self._main_key = main_key

    @property
    def ttl(self) -> Optional[timedelta]:
        return self._ttl

    @property
    def requires_main_key(self) -> bool:
        return bool(self._main_key)

    def check_main_key(self, candidate: Optional[str]) -> bool:
        """Return True when no main key is configured or ``candidate`` matches it."""
        if not self._main_key:
            return True
        if not candidate:
            return False
        return hmac.compare_digest(candidate.encode("utf-8"), self._main_key.encode("utf-8"))

    def issue(self, claims: Dict[str, Any]) -> str:
        now = int(time.time())
        payload = {key: value for key, value in claims.items() if value is not None}
        payload.update({"iat": now, "jti": uuid.uuid4().hex})
        if self._ttl is not None:
            payload["exp"] = now + int(self._ttl.total_seconds())
        return jwt.encode(payload, self._secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> Dict[str, Any]:
        try:
            return jwt.decode(token, self._secret, algorithms=[ALGORITHM])
        except jwt.ExpiredSignatureError as exc:
            raise ApiKeyError("API key has expired.") from exc
        except jwt.InvalidTokenError as exc:
            raise ApiKeyError("API key is invalid.") from exc


__all__ = ["ApiKeyError", "ApiKeyService"]
