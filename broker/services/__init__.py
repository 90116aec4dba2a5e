"""Service layer exports."""

from .api_keys import ApiKeyError, ApiKeyService
from .token_cipher import TokenCipherService
from .token_manager import TokenLifecycleManager

__all__ = [
    "ApiKeyError",
    "ApiKeyService",
    "TokenCipherService",
    "TokenLifecycleManager",
]
