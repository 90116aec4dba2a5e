"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_api_key_service,
    get_graph_client,
    get_microsoft_oauth_client,
    get_secret_store,
    get_token_cipher_service,
    get_token_manager,
)
from .config import Settings, get_app_settings
from .request import ApiKeyClaims, Tenant, get_tenant, require_api_key

__all__ = [
    "ApiKeyClaims",
    "Settings",
    "Tenant",
    "get_api_key_service",
    "get_app_settings",
    "get_graph_client",
    "get_microsoft_oauth_client",
    "get_secret_store",
    "get_tenant",
    "get_token_cipher_service",
    "get_token_manager",
    "require_api_key",
]
