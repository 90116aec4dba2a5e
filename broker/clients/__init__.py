"""Expose constructed client wrappers."""

from .aws_secrets import AWSSecretsManagerStore
from .graph_drive import GraphApiError, GraphDriveClient
from .microsoft_auth import MicrosoftOAuthClient
from .secret_store import SecretStore, build_secret_store
from .sqlite_store import SQLiteSecretStore

__all__ = [
    "AWSSecretsManagerStore",
    "GraphApiError",
    "GraphDriveClient",
    "MicrosoftOAuthClient",
    "SQLiteSecretStore",
    "SecretStore",
    "build_secret_store",
]
