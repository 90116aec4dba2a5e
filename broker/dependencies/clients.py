"""
Factory functions to provide shared clients and services as FastAPI dependencies.

Each factory builds its object once per process from the validated settings
and passes collaborators in explicitly, so tests can swap any of them through
``app.dependency_overrides``.
"""

from datetime import timedelta
from functools import lru_cache

from broker.clients import (
    GraphDriveClient,
    MicrosoftOAuthClient,
    SecretStore,
    build_secret_store,
)
from broker.core.config import get_settings
from broker.services import ApiKeyService, TokenCipherService, TokenLifecycleManager


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_secret_store() -> SecretStore:
    """Provide the configured versioned secret store."""
    return build_secret_store(_settings().store)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    return TokenCipherService(secret=_settings().security.encryption_key)


@lru_cache()
def get_microsoft_oauth_client() -> MicrosoftOAuthClient:
    """Create a singleton Microsoft OAuth client."""
    settings = _settings()
    return MicrosoftOAuthClient(
        settings.microsoft, timeout=settings.tokens.upstream_timeout_seconds
    )


@lru_cache()
def get_token_manager() -> TokenLifecycleManager:
    """Provide the process-wide token lifecycle manager."""
    settings = _settings()
    return TokenLifecycleManager(
        store=get_secret_store(),
        cipher=get_token_cipher_service(),
        oauth_client=get_microsoft_oauth_client(),
        skew_seconds=settings.tokens.staleness_skew_seconds,
        single_flight=settings.tokens.single_flight,
    )


@lru_cache()
def get_api_key_service() -> ApiKeyService:
    """Provide the API key issuer/verifier."""
    security = _settings().security
    ttl = timedelta(days=security.api_key_ttl_days) if security.api_key_ttl_days else None
    return ApiKeyService(
        secret=security.jwt_secret,
        ttl=ttl,
        main_key=security.main_key,
    )


@lru_cache()
def get_graph_client() -> GraphDriveClient:
    """Provide Microsoft Graph drive client instance."""
    settings = _settings()
    return GraphDriveClient(
        settings.microsoft.graph_base_url,
        timeout=max(settings.tokens.upstream_timeout_seconds, 30.0),
    )


__all__ = [
    "get_api_key_service",
    "get_graph_client",
    "get_microsoft_oauth_client",
    "get_secret_store",
    "get_token_cipher_service",
    "get_token_manager",
]
