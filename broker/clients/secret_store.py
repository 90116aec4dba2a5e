"""Versioned secret store interface and backend selection."""

from __future__ import annotations

from typing import Mapping, Protocol

from broker.core.config import StoreSettings


class SecretStore(Protocol):
    """Append-only versioned key/value store; reads return the latest version."""

    async def get_latest(self, name: str) -> str:
        """Return the newest payload for ``name`` or raise ``SecretNotFoundError``."""
        ...

    async def create_if_absent(
        self, name: str, labels: Mapping[str, str] | None = None
    ) -> None:
        ...

    async def add_version(self, name: str, payload: str) -> str:
        """Append ``payload`` as the newest version and return its identifier."""
        ...


def build_secret_store(settings: StoreSettings) -> SecretStore:
    """Instantiate the store backend named in configuration."""
    if settings.backend == "aws":
        from broker.clients.aws_secrets import AWSSecretsManagerStore

        return AWSSecretsManagerStore(settings)

    from broker.clients.sqlite_store import SQLiteSecretStore

    return SQLiteSecretStore(settings.sqlite_path, timeout=settings.timeout_seconds)


__all__ = ["SecretStore", "build_secret_store"]
