"""
FastAPI routes for API key issuance and the OAuth token lifecycle.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Query

from broker.dependencies import (
    Tenant,
    get_api_key_service,
    get_microsoft_oauth_client,
    get_token_manager,
    require_api_key,
)
from broker.schemas import (
    AccessTokenResponse,
    ApiKeyRequest,
    ApiKeyResponse,
    AuthUrlRequest,
    AuthUrlResponse,
    CodeExchangeRequest,
    TokenStatusResponse,
    TokenStoredResponse,
)

router = APIRouter()
auth_router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.post("/create-api-key", response_model=ApiKeyResponse)
async def create_api_key(
    payload: ApiKeyRequest,
    api_keys: Annotated[Any, Depends(get_api_key_service)],
) -> ApiKeyResponse:
    """Issue a signed API key for calling the protected routes."""
    if not api_keys.check_main_key(payload.main_key):
        raise HTTPException(status_code=HTTPStatus.UNAUTHORIZED, detail="Invalid main key.")

    token = api_keys.issue(
        {"clientEmail": payload.client_email, "clientName": payload.client_name}
    )
    ttl = api_keys.ttl
    logger.info("Issued API key for %s", payload.client_email or "anonymous client")
    return ApiKeyResponse(
        api_key=token,
        expires_in=f"{ttl.days} days" if ttl is not None else None,
    )


@auth_router.get("/auth-url", response_model=AuthUrlResponse)
async def get_authorization_url(
    oauth_client: Annotated[Any, Depends(get_microsoft_oauth_client)],
    redirect_uri: str | None = Query(default=None, alias="redirectUri"),
) -> AuthUrlResponse:
    """Return the Microsoft consent URL for the given redirect URI."""
    return AuthUrlResponse(url=oauth_client.build_authorization_url(redirect_uri))


@auth_router.post("/auth-url", response_model=AuthUrlResponse)
async def post_authorization_url(
    oauth_client: Annotated[Any, Depends(get_microsoft_oauth_client)],
    payload: AuthUrlRequest | None = None,
) -> AuthUrlResponse:
    redirect_uri = payload.redirect_uri if payload else None
    return AuthUrlResponse(url=oauth_client.build_authorization_url(redirect_uri))


@auth_router.post("/get-access-token", response_model=TokenStoredResponse)
async def exchange_authorization_code(
    payload: CodeExchangeRequest,
    tenant: Tenant,
    manager: Annotated[Any, Depends(get_token_manager)],
) -> TokenStoredResponse:
    """Exchange an authorization code and store the tenant's tokens."""
    if not payload.code:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Authorization code is missing."
        )

    record = await manager.exchange_code(
        tenant, payload.code, redirect_uri=payload.redirect_uri
    )
    return TokenStoredResponse(
        message="Tokens stored successfully", expiry_date=record.expires_at
    )


@auth_router.post(
    "/get-access-token-with-refresh-token",
    response_model=AccessTokenResponse,
    dependencies=[Depends(require_api_key)],
)
async def get_valid_access_token(
    tenant: Tenant,
    manager: Annotated[Any, Depends(get_token_manager)],
    payload: AuthUrlRequest | None = None,
) -> AccessTokenResponse:
    """Return the tenant's access token, refreshing it first when stale."""
    redirect_uri = payload.redirect_uri if payload else None
    result = await manager.ensure_access_token(tenant, redirect_uri=redirect_uri)
    return AccessTokenResponse(
        access_token=result.access_token, refreshed=result.refreshed
    )


@auth_router.get(
    "/token-status",
    response_model=TokenStatusResponse,
    dependencies=[Depends(require_api_key)],
)
async def get_token_status(
    tenant: Tenant,
    manager: Annotated[Any, Depends(get_token_manager)],
) -> TokenStatusResponse:
    """Report whether the stored access token needs a refresh."""
    return TokenStatusResponse(tenant=tenant, expired=await manager.is_expired(tenant))


__all__ = ["auth_router", "router"]
