"""
AWS Secrets Manager adapter for persisting encrypted token records.

Every write becomes a new secret version; reads return ``AWSCURRENT``.
"""

from __future__ import annotations

import asyncio
from typing import Any, Mapping

import boto3
from botocore.config import Config
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from broker.core.config import StoreSettings
from broker.core.errors import SecretNotFoundError, StoreError, TokenError, TransportError

_NOT_FOUND = "ResourceNotFoundException"
_ALREADY_EXISTS = "ResourceExistsException"
_TRANSIENT_CODES = frozenset(
    {
        "InternalServiceError",
        "RequestTimeout",
        "RequestTimeoutException",
        "ServiceUnavailable",
        "ServiceUnavailableException",
        "ThrottlingException",
        "TooManyRequestsException",
    }
)


class AWSSecretsManagerStore:
    """Thin async wrapper over the boto3 ``secretsmanager`` client."""

    def __init__(self, settings: StoreSettings, client: Any | None = None) -> None:
        self._settings = settings
        self._prefix = settings.name_prefix
        self._client = client or boto3.client(
            "secretsmanager",
            region_name=settings.region_name,
            config=Config(
                connect_timeout=settings.timeout_seconds,
                read_timeout=settings.timeout_seconds,
                retries={"max_attempts": 1, "mode": "standard"},
            ),
        )

    def _secret_id(self, name: str) -> str:
        return f"{self._prefix}{name}"

    def _get_latest(self, name: str) -> str:
        try:
            response = self._client.get_secret_value(
                SecretId=self._secret_id(name), VersionStage="AWSCURRENT"
            )
        except ClientError as exc:
            if _error_code(exc) == _NOT_FOUND:
                raise SecretNotFoundError(name) from exc
            raise
        secret_string = response.get("SecretString")
        if secret_string is None:
            raise SecretNotFoundError(name)
        return secret_string

    def _create_if_absent(self, name: str, labels: Mapping[str, str]) -> None:
        tags = [{"Key": key, "Value": value} for key, value in labels.items()]
        try:
            self._client.create_secret(Name=self._secret_id(name), Tags=tags)
        except ClientError as exc:
            if _error_code(exc) != _ALREADY_EXISTS:
                raise

    def _add_version(self, name: str, payload: str) -> str:
        try:
            response = self._client.put_secret_value(
                SecretId=self._secret_id(name), SecretString=payload
            )
        except ClientError as exc:
            if _error_code(exc) == _NOT_FOUND:
                raise SecretNotFoundError(name) from exc
            raise
        return response["VersionId"]

    async def get_latest(self, name: str) -> str:
        return await self._run(self._get_latest, name)

    async def create_if_absent(
        self, name: str, labels: Mapping[str, str] | None = None
    ) -> None:
        await self._run(self._create_if_absent, name, labels or {})

    async def add_version(self, name: str, payload: str) -> str:
        return await self._run(self._add_version, name, payload)

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except (BotoConnectionError, ConnectTimeoutError, ReadTimeoutError) as exc:
            raise TransportError(f"Secrets Manager unreachable: {exc}") from exc
        except ClientError as exc:
            raise _classify(exc) from exc
        except BotoCoreError as exc:
            raise TransportError(f"Secrets Manager request failed: {exc}") from exc


def _error_code(exc: ClientError) -> str:
    return exc.response.get("Error", {}).get("Code", "")


def _classify(exc: ClientError) -> TokenError:
    """Throttling and 5xx answers are retryable; anything else is a refusal."""
    code = _error_code(exc)
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
    if code in _TRANSIENT_CODES or status >= 500:
        return TransportError(f"Secrets Manager unavailable ({code or status}).")
    return StoreError(f"Secrets Manager rejected the request ({code or status}).")


__all__ = ["AWSSecretsManagerStore"]
