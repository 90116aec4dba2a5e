"""
Application configuration models and helpers.

Settings are read once from the process environment at startup and handed to
the components that need them; required key material is validated eagerly so a
misconfigured deployment fails before serving traffic.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Literal, Optional

import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _read_env_file(path: str = ".env") -> dict[str, str]:
    """Parse key=value pairs from a .env file; missing files yield nothing."""
    env_path = Path(path)
    if not env_path.exists():
        return {}
    values: dict[str, str] = {}
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key:
            continue
        values[key] = value.strip().strip('"').strip("'")
    return values


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load a .env file without overriding the real environment."""
    for key, value in _read_env_file(path).items():
        os.environ.setdefault(key, value)


_load_env_file()


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


class _EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")


class MicrosoftSettings(_EnvSettings):
    """Configuration required for the Microsoft identity platform and Graph."""

    client_id: str = Field(..., alias="MS_CLIENT_ID", min_length=1)
    client_secret: str = Field(..., alias="MS_CLIENT_SECRET", min_length=1)
    tenant: str = Field(
        "consumers",
        alias="MS_TENANT",
        description="Directory segment of the token endpoint; 'consumers' accepts personal accounts.",
    )
    default_redirect_uri: str = Field(
        "http://localhost:8080", alias="DEFAULT_REDIRECT_URI"
    )
    authority: str = Field(
        "https://login.microsoftonline.com", alias="MS_AUTHORITY"
    )
    graph_base_url: str = Field(
        "https://graph.microsoft.com/v1.0", alias="MS_GRAPH_BASE_URL"
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "User.Read",
            "Files.Read.All",
            "Files.ReadWrite.All",
            "Sites.Read.All",
            "offline_access",
        ),
        alias="MS_SCOPES",
    )

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        return _split_csv(value)

    @property
    def token_url(self) -> str:
        return f"{self.authority.rstrip('/')}/{self.tenant}/oauth2/v2.0/token"

    @property
    def authorize_url(self) -> str:
        return f"{self.authority.rstrip('/')}/{self.tenant}/oauth2/v2.0/authorize"


class SecuritySettings(_EnvSettings):
    """Signing and encryption material."""

    jwt_secret: str = Field(..., alias="JWT_SECRET", min_length=1)
    encryption_key: str = Field(
        ...,
        alias="ENCRYPTION_KEY",
        description="Secret the AES-256-GCM key for stored token records is derived from.",
    )
    main_key: Optional[str] = Field(
        None,
        alias="MAIN_KEY",
        description="When set, API key issuance requires callers to present it.",
    )
    api_key_ttl_days: int = Field(30, alias="API_KEY_TTL_DAYS", ge=0)

    @field_validator("encryption_key")
    @classmethod
    def _check_key_length(cls, value: str) -> str:
        if len(value) < 32:
            raise ValueError("ENCRYPTION_KEY must be at least 32 characters long.")
        return value


class StoreSettings(_EnvSettings):
    """Where encrypted token records are persisted."""

    backend: Literal["sqlite", "aws"] = Field("sqlite", alias="SECRET_STORE_BACKEND")
    sqlite_path: str = Field("data/secrets.db", alias="SECRET_STORE_PATH")
    region_name: str = Field("us-east-1", alias="AWS_REGION")
    name_prefix: str = Field("", alias="SECRET_NAME_PREFIX")
    timeout_seconds: float = Field(5.0, alias="SECRET_STORE_TIMEOUT", gt=0)


class TokenSettings(_EnvSettings):
    """Token lifecycle tuning."""

    staleness_skew_seconds: float = Field(
        10.0, alias="TOKEN_STALENESS_SKEW_SECONDS", ge=0
    )
    upstream_timeout_seconds: float = Field(
        10.0, alias="UPSTREAM_TIMEOUT_SECONDS", gt=0
    )
    single_flight: bool = Field(True, alias="TOKEN_REFRESH_SINGLE_FLIGHT")


class AppSettings(_EnvSettings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", alias="APP_ENV")
    log_level: str = Field("INFO", alias="APP_LOG_LEVEL")
    cors_allow_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        ("*",), alias="CORS_ALLOW_ORIGINS"
    )
    max_upload_bytes: int = Field(50 * 1024 * 1024, alias="MAX_UPLOAD_BYTES", gt=0)
    microsoft: MicrosoftSettings = Field(default_factory=MicrosoftSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    store: StoreSettings = Field(default_factory=StoreSettings)
    tokens: TokenSettings = Field(default_factory=TokenSettings)

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _split_origins(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        return _split_csv(value)


def settings_from_values(values: dict[str, str]) -> AppSettings:
    """Build settings with ``values`` taking precedence over the environment."""
    return AppSettings(
        microsoft=MicrosoftSettings(**values),
        security=SecuritySettings(**values),
        store=StoreSettings(**values),
        tokens=TokenSettings(**values),
        **values,
    )


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "MicrosoftSettings",
    "SecuritySettings",
    "StoreSettings",
    "TokenSettings",
    "get_settings",
    "settings_from_values",
]
