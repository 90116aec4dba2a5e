"""Public schema exports."""

from .auth import (
    AccessTokenResponse,
    ApiKeyRequest,
    ApiKeyResponse,
    AuthUrlRequest,
    AuthUrlResponse,
    CodeExchangeRequest,
    TokenStatusResponse,
    TokenStoredResponse,
)
from .drive import (
    CreateFolderResponse,
    CreateFoldersRequest,
    CreateFoldersResponse,
    CreatedFolder,
    DriveFolderRequest,
    DriveItem,
    FolderSpec,
    SiteFolderRequest,
    UploadRequest,
    UploadResponse,
)

__all__ = [
    "AccessTokenResponse",
    "ApiKeyRequest",
    "ApiKeyResponse",
    "AuthUrlRequest",
    "AuthUrlResponse",
    "CodeExchangeRequest",
    "CreateFolderResponse",
    "CreateFoldersRequest",
    "CreateFoldersResponse",
    "CreatedFolder",
    "DriveFolderRequest",
    "DriveItem",
    "FolderSpec",
    "SiteFolderRequest",
    "TokenStatusResponse",
    "TokenStoredResponse",
    "UploadRequest",
    "UploadResponse",
]
