"""
OneDrive and SharePoint pass-through routes.

Each handler resolves the tenant from the request headers, asks the token
manager for a valid access token and forwards the call to Microsoft Graph.
"""

from __future__ import annotations

import base64
import binascii
from http import HTTPStatus
from typing import Annotated, Any, List

from fastapi import APIRouter, Depends, HTTPException, Query

from broker.dependencies import (
    Settings,
    Tenant,
    get_graph_client,
    get_token_manager,
    require_api_key,
)
from broker.schemas import (
    CreateFolderResponse,
    CreateFoldersRequest,
    CreateFoldersResponse,
    DriveFolderRequest,
    DriveItem,
    SiteFolderRequest,
    UploadRequest,
    UploadResponse,
)

onedrive_router = APIRouter(
    prefix="/onedrive-api", tags=["onedrive"], dependencies=[Depends(require_api_key)]
)
sharepoint_router = APIRouter(
    prefix="/sharepoint", tags=["sharepoint"], dependencies=[Depends(require_api_key)]
)
drive_folders_router = APIRouter(
    prefix="/onedrive", tags=["onedrive"], dependencies=[Depends(require_api_key)]
)

Manager = Annotated[Any, Depends(get_token_manager)]
Graph = Annotated[Any, Depends(get_graph_client)]


def decode_upload(file_field: str) -> bytes:
    """Decode a base64 payload, accepting ``data:<mime>;base64,`` prefixes."""
    encoded = file_field.strip()
    if encoded.startswith("data:"):
        _, _, encoded = encoded.partition(",")
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise HTTPException(
            status_code=HTTPStatus.BAD_REQUEST, detail="Invalid base64 data."
        ) from exc


@onedrive_router.post("/upload", response_model=UploadResponse)
async def upload_file(
    payload: UploadRequest,
    tenant: Tenant,
    manager: Manager,
    graph: Graph,
    settings: Settings,
    file_name: str = Query(..., alias="fileName", min_length=1),
    mime_type: str = Query(..., alias="mimeType", min_length=1),
    parent_id: str | None = Query(default="root", alias="parentId"),
) -> UploadResponse:
    """Upload a base64-encoded file into the tenant's OneDrive."""
    content = decode_upload(payload.file)
    if not content:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="File is empty.")
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=HTTPStatus.REQUEST_ENTITY_TOO_LARGE,
            detail=f"File exceeds {settings.max_upload_bytes} bytes.",
        )

    access_token = await manager.get_valid_access_token(tenant)
    item = await graph.upload_file(
        access_token,
        file_name=file_name,
        content=content,
        mime_type=mime_type,
        parent_id=parent_id,
    )
    return UploadResponse(
        message=f"File uploaded with ID: {item['id']}",
        id=item["id"],
        name=item.get("name"),
        webViewLink=item.get("webUrl"),
    )


@onedrive_router.get("/list", response_model=List[DriveItem])
async def list_files(
    tenant: Tenant,
    manager: Manager,
    graph: Graph,
    folder_id: str | None = Query(default=None, alias="folderId"),
    name_folder: str | None = Query(default=None, alias="nameFolder"),
) -> List[dict]:
    """List a folder's children, optionally by name prefix."""
    access_token = await manager.get_valid_access_token(tenant)
    return await graph.list_children(
        access_token, folder_id=folder_id, name_prefix=name_folder
    )


@onedrive_router.get("/listv2", response_model=List[DriveItem])
async def list_files_v2(
    tenant: Tenant,
    manager: Manager,
    graph: Graph,
    folder_id: str | None = Query(default=None, alias="folderId"),
    name_folders: str | None = Query(
        default=None,
        alias="nameFolders",
        description="Comma-separated substrings; items matching any are kept.",
    ),
) -> List[dict]:
    access_token = await manager.get_valid_access_token(tenant)
    names = [name.strip() for name in (name_folders or "").split(",")]
    return await graph.list_children_matching(
        access_token, folder_id=folder_id, names=names
    )


@onedrive_router.post("/folder", response_model=CreateFolderResponse)
async def create_folder(
    tenant: Tenant,
    manager: Manager,
    graph: Graph,
    folder_name: str = Query(..., alias="folderName", min_length=1),
    parent_folder_id: str | None = Query(default=None, alias="parentFolderId"),
) -> CreateFolderResponse:
    access_token = await manager.get_valid_access_token(tenant)
    folder = await graph.create_folder(
        access_token, folder_name, parent_id=parent_folder_id
    )
    return CreateFolderResponse(folderId=folder["id"], folderName=folder["name"])


@onedrive_router.post("/folders", response_model=CreateFoldersResponse)
async def create_folders(
    payload: CreateFoldersRequest,
    tenant: Tenant,
    manager: Manager,
    graph: Graph,
    parent_folder_id: str | None = Query(default=None, alias="parentFolderId"),
) -> CreateFoldersResponse:
    """Create a folder chain: the first under the parent, the rest inside the first."""
    access_token = await manager.get_valid_access_token(tenant)
    created = await graph.create_folders(
        access_token,
        [folder.folder_name for folder in payload.folders],
        parent_id=parent_folder_id,
    )
    return CreateFoldersResponse(folders=created)


@drive_folders_router.get("/folders")
async def list_root_children(tenant: Tenant, manager: Manager, graph: Graph) -> dict:
    """Raw Graph children of the drive root."""
    access_token = await manager.get_valid_access_token(tenant)
    return await graph.get_children(access_token)


@drive_folders_router.post("/folder")
async def create_drive_folder(
    payload: DriveFolderRequest, tenant: Tenant, manager: Manager, graph: Graph
) -> dict:
    """Create a folder and return the raw Graph driveItem."""
    access_token = await manager.get_valid_access_token(tenant)
    return await graph.create_folder(
        access_token, payload.folder_name, parent_id=payload.parent_folder_id
    )


@sharepoint_router.get("/sites")
async def list_sites(tenant: Tenant, manager: Manager, graph: Graph) -> dict:
    access_token = await manager.get_valid_access_token(tenant)
    site = await graph.get_root_site(access_token)
    return {"value": [site]}


@sharepoint_router.get("/folders/{site_id}")
async def list_site_folders(
    site_id: str, tenant: Tenant, manager: Manager, graph: Graph
) -> dict:
    access_token = await manager.get_valid_access_token(tenant)
    return await graph.list_site_children(access_token, site_id)


@sharepoint_router.post("/folder")
async def create_site_folder(
    payload: SiteFolderRequest, tenant: Tenant, manager: Manager, graph: Graph
) -> dict:
    access_token = await manager.get_valid_access_token(tenant)
    return await graph.create_site_folder(
        access_token, payload.site_id, payload.folder_name, payload.parent_folder_id
    )


__all__ = [
    "decode_upload",
    "drive_folders_router",
    "onedrive_router",
    "sharepoint_router",
]
