"""Domain models."""

from .tokens import TokenGrant, TokenRecord, tenant_key

__all__ = ["TokenGrant", "TokenRecord", "tenant_key"]
