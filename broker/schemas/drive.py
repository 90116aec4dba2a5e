"""
Pydantic models for the OneDrive and SharePoint pass-through routes.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DriveItem(BaseModel):
    """Listing entry returned for OneDrive folders."""

    id: str
    name: str
    mimeType: str
    webViewLink: Optional[str] = None
    iconLink: str
    modifiedTime: Optional[str] = None


class UploadRequest(BaseModel):
    """File content as base64, optionally wrapped in a data URL."""

    file: str = Field(
        ...,
        min_length=1,
        description="Base64 payload or 'data:<mime>;base64,<payload>' string.",
    )


class UploadResponse(BaseModel):
    message: str
    id: str
    name: Optional[str] = None
    webViewLink: Optional[str] = None


class FolderSpec(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    folder_name: str = Field(..., alias="folderName", min_length=1)


class CreateFoldersRequest(BaseModel):
    folders: List[FolderSpec] = Field(..., min_length=1)


class CreatedFolder(BaseModel):
    folderId: str
    folderName: str
    driveId: Optional[str] = None
    webViewLink: Optional[str] = None


class CreateFolderResponse(BaseModel):
    message: str = "Folder created successfully"
    folderId: str
    folderName: str


class CreateFoldersResponse(BaseModel):
    message: str = "Folders created successfully"
    folders: List[CreatedFolder]


class DriveFolderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    folder_name: str = Field(..., alias="folderName", min_length=1)
    parent_folder_id: str = Field("root", alias="parentFolderId", min_length=1)


class SiteFolderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    folder_name: str = Field(..., alias="folderName", min_length=1)
    site_id: str = Field(..., alias="siteId", min_length=1)
    parent_folder_id: str = Field(..., alias="parentFolderId", min_length=1)


__all__ = [
    "CreateFolderResponse",
    "CreateFoldersRequest",
    "CreateFoldersResponse",
    "CreatedFolder",
    "DriveFolderRequest",
    "DriveItem",
    "FolderSpec",
    "SiteFolderRequest",
    "UploadRequest",
    "UploadResponse",
]
