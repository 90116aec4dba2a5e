"""
Per-request dependencies: API key verification and tenant resolution.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any, Dict, Optional

from fastapi import Depends, Header, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from broker.dependencies.clients import get_api_key_service
from broker.models.tokens import tenant_key
from broker.services.api_keys import ApiKeyError, ApiKeyService

logger = logging.getLogger(__name__)

ENVIRONMENT_HEADER = "x-salesforce-environment"
ORGANIZATION_HEADER = "x-salesforce-organization-id"

_bearer_scheme = HTTPBearer(auto_error=False)


async def require_api_key(
    api_keys: Annotated[ApiKeyService, Depends(get_api_key_service)],
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Dict[str, Any]:
    """Verify the bearer API key and return its claims."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail="No API key provided.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return api_keys.verify(credentials.credentials)
    except ApiKeyError as exc:
        logger.info("Rejected API key: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.UNAUTHORIZED,
            detail=str(exc),
            headers={"WWW-Authenticate": "Bearer"},
        ) from exc


async def get_tenant(
    environment: Optional[str] = Header(None, alias=ENVIRONMENT_HEADER),
    organization_id: Optional[str] = Header(None, alias=ORGANIZATION_HEADER),
) -> str:
    """Resolve the tenant storage key from the request headers."""
    environment = (environment or "").strip()
    organization_id = (organization_id or "").strip()
    if not environment or not organization_id:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST,
            detail=f"Headers {ENVIRONMENT_HEADER} and {ORGANIZATION_HEADER} are required.",
        )
    return tenant_key(environment, organization_id)


ApiKeyClaims = Annotated[Dict[str, Any], Depends(require_api_key)]
Tenant = Annotated[str, Depends(get_tenant)]

__all__ = [
    "ApiKeyClaims",
    "ENVIRONMENT_HEADER",
    "ORGANIZATION_HEADER",
    "Tenant",
    "get_tenant",
    "require_api_key",
]
