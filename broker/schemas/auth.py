"""Schemas related to OAuth flows and API key issuance."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ApiKeyRequest(_CamelModel):
    """Body of ``POST /create-api-key``."""

    main_key: Optional[str] = Field(None, alias="mainKey")
    client_email: Optional[str] = Field(None, alias="clientEmail")
    client_name: Optional[str] = Field(None, alias="clientName")


class ApiKeyResponse(_CamelModel):
    success: bool = True
    api_key: str = Field(..., alias="apiKey")
    expires_in: Optional[str] = Field(None, alias="expiresIn")


class AuthUrlRequest(_CamelModel):
    redirect_uri: Optional[str] = Field(None, alias="redirectUri")


class AuthUrlResponse(BaseModel):
    url: str


class CodeExchangeRequest(_CamelModel):
    """Authorization code returned to the redirect URI by Microsoft."""

    code: Optional[str] = Field(None, description="Authorization code to exchange.")
    redirect_uri: Optional[str] = Field(None, alias="redirectUri")


class TokenStoredResponse(_CamelModel):
    success: bool = True
    message: str
    expiry_date: Optional[int] = Field(None, alias="expiryDate")


class AccessTokenResponse(BaseModel):
    success: bool = True
    access_token: str
    refreshed: bool = Field(
        False, description="True when the token had to be renewed for this call."
    )


class TokenStatusResponse(BaseModel):
    tenant: str
    expired: bool


__all__ = [
    "AccessTokenResponse",
    "ApiKeyRequest",
    "ApiKeyResponse",
    "AuthUrlRequest",
    "AuthUrlResponse",
    "CodeExchangeRequest",
    "TokenStatusResponse",
    "TokenStoredResponse",
]
