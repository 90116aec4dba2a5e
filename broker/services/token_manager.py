"""
Token lifecycle management for tenant OAuth credentials.

The manager is the only writer of token records. It hands out a currently
valid access token per tenant, refreshing through the upstream token endpoint
when the cached one is within the staleness skew of expiry, and persists every
new token pair as a fresh encrypted secret version.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Awaitable, Callable, Dict, NamedTuple, Optional, Protocol

from pydantic import ValidationError

from broker.clients.secret_store import SecretStore
from broker.core.errors import (
    CredentialNotFound,
    IntegrityError,
    RefreshUnavailable,
    SecretNotFoundError,
    TokenError,
)
from broker.models.tokens import TENANT_KEY_PREFIX, TokenGrant, TokenRecord, now_ms
from broker.services.token_cipher import TokenCipherService

logger = logging.getLogger(__name__)

DEFAULT_SKEW_SECONDS = 10.0


class TokenEndpoint(Protocol):
    async def exchange_authorization_code(
        self, code: str, redirect_uri: str | None = None
    ) -> TokenGrant:
        ...

    async def refresh_access_token(
        self, refresh_token: str, redirect_uri: str | None = None
    ) -> TokenGrant:
        ...


class AccessToken(NamedTuple):
    access_token: str
    refreshed: bool


class TokenLifecycleManager:
    """Serve valid access tokens per tenant, refreshing when stale."""

    def __init__(
        self,
        *,
        store: SecretStore,
        cipher: TokenCipherService,
        oauth_client: TokenEndpoint,
        skew_seconds: float = DEFAULT_SKEW_SECONDS,
        single_flight: bool = True,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._cipher = cipher
        self._oauth = oauth_client
        self._skew_ms = int(skew_seconds * 1000)
        self._single_flight = single_flight
        self._clock = clock
        self._inflight: Dict[str, asyncio.Task[str]] = {}

    @property
    def skew_ms(self) -> int:
        return self._skew_ms

    async def get_record(self, tenant: str) -> TokenRecord:
        """Read and decrypt the latest record for ``tenant``."""
        try:
            blob = await self._store.get_latest(tenant)
        except SecretNotFoundError as exc:
            raise CredentialNotFound(
                f"No OAuth tokens stored for tenant {tenant}.", tenant=tenant
            ) from exc

        plaintext = self._cipher.decrypt(blob)
        try:
            return TokenRecord.model_validate(json.loads(plaintext))
        except (ValueError, ValidationError) as exc:
            raise IntegrityError(
                f"Stored token record for tenant {tenant} is unreadable.",
                tenant=tenant,
            ) from exc

    async def store_tokens(
        self,
        tenant: str,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_in: Optional[float] = None,
    ) -> TokenRecord:
        """
        Persist a token pair as the newest version for ``tenant``.

        The secret container is created on first use. Returns the stored
        record, whose ``expires_at`` is ``None`` when ``expires_in`` was not
        supplied.
        """
        record = TokenRecord.issued(
            access_token,
            refresh_token,
            expires_in,
            issued_at_ms=self._clock(),
        )
        blob = self._cipher.encrypt(json.dumps(record.to_payload()))

        await self._store.create_if_absent(tenant, _labels_for(tenant))
        version = await self._store.add_version(tenant, blob)
        logger.info(
            "Stored tokens for %s as %s (expires %s, refresh token %s)",
            tenant,
            version,
            record.expires_at_iso or "unknown",
            "present" if record.can_refresh else "absent",
        )
        return record

    async def is_stale(self, tenant: str) -> bool:
        """Read-only staleness check; raises ``CredentialNotFound`` when absent."""
        record = await self.get_record(tenant)
        return record.is_stale(now=self._clock(), skew_ms=self._skew_ms)

    is_expired = is_stale

    async def get_valid_access_token(
        self, tenant: str, *, redirect_uri: str | None = None
    ) -> str:
        """Return a usable access token, refreshing it first when stale."""
        result = await self.ensure_access_token(tenant, redirect_uri=redirect_uri)
        return result.access_token

    async def ensure_access_token(
        self, tenant: str, *, redirect_uri: str | None = None
    ) -> AccessToken:
        """Resolve a usable token and report whether this call had to refresh it."""
        record = await self.get_record(tenant)
        if not record.is_stale(now=self._clock(), skew_ms=self._skew_ms):
            logger.debug("Cached access token for %s is still valid", tenant)
            return AccessToken(record.access_token, refreshed=False)
        if not record.can_refresh:
            raise RefreshUnavailable(
                f"Access token for tenant {tenant} is expired and no refresh token is stored.",
                tenant=tenant,
            )

        if not self._single_flight:
            token = await self._refresh(tenant, redirect_uri)
        else:
            token = await self._join_refresh(
                tenant, lambda: self._refresh(tenant, redirect_uri)
            )
        return AccessToken(token, refreshed=True)

    async def exchange_code(
        self, tenant: str, code: str, *, redirect_uri: str | None = None
    ) -> TokenRecord:
        """Complete the authorization-code flow and store the resulting tokens."""
        grant = await self._oauth.exchange_authorization_code(code, redirect_uri)
        return await self.store_tokens(
            tenant, grant.access_token, grant.refresh_token, grant.expires_in
        )

    async def _join_refresh(
        self, tenant: str, factory: Callable[[], Awaitable[str]]
    ) -> str:
        task = self._inflight.get(tenant)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._inflight[tenant] = task
            task.add_done_callback(lambda done: self._forget(tenant, done))
        else:
            logger.debug("Joining in-flight refresh for %s", tenant)
        # Shielded so one caller's cancellation leaves the shared refresh running.
        return await asyncio.shield(task)

    def _forget(self, tenant: str, task: asyncio.Task[str]) -> None:
        if self._inflight.get(tenant) is task:
            del self._inflight[tenant]
        if not task.cancelled():
            # Mark the outcome as observed even if every waiter was cancelled.
            task.exception()

    async def _refresh(self, tenant: str, redirect_uri: str | None) -> str:
        record = await self.get_record(tenant)
        if not record.is_stale(now=self._clock(), skew_ms=self._skew_ms):
            logger.debug("Token for %s was refreshed by another writer", tenant)
            return record.access_token
        if not record.refresh_token:
            raise RefreshUnavailable(
                f"Access token for tenant {tenant} is expired and no refresh token is stored.",
                tenant=tenant,
            )

        try:
            grant = await self._oauth.refresh_access_token(
                record.refresh_token, redirect_uri
            )
        except TokenError as exc:
            if exc.tenant is None:
                exc.tenant = tenant
            logger.warning("Refresh for %s failed: %s", tenant, exc.kind.value)
            raise

        # Providers rotate refresh tokens only occasionally; keep the old one
        # when the response omits it.
        refresh_token = grant.refresh_token or record.refresh_token
        await self.store_tokens(
            tenant, grant.access_token, refresh_token, grant.expires_in
        )
        logger.info(
            "Refreshed access token for %s (refresh token %s)",
            tenant,
            "rotated" if grant.refresh_token else "retained",
        )
        return grant.access_token


def _labels_for(tenant: str) -> Dict[str, str]:
    return {"type": TENANT_KEY_PREFIX, "tenant": tenant}


__all__ = ["AccessToken", "TokenEndpoint", "TokenLifecycleManager"]
