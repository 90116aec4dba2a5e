"""Microsoft Graph client wrapper for OneDrive and SharePoint document libraries."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

import httpx

from broker.core.errors import TransportError

logger = logging.getLogger(__name__)

CONFLICT_BEHAVIOR = "@microsoft.graph.conflictBehavior"


class GraphApiError(Exception):
    """Raised when Graph answers with a non-success status."""

    def __init__(self, message: str, *, status_code: int, body: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body


def format_drive_item(item: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten a Graph ``driveItem`` into the listing shape returned to callers."""
    file_facet = item.get("file")
    return {
        "id": item.get("id"),
        "name": item.get("name"),
        "mimeType": file_facet.get("mimeType") if file_facet else "folder",
        "webViewLink": item.get("webUrl"),
        "iconLink": "file-icon" if file_facet else "folder-icon",
        "modifiedTime": item.get("lastModifiedDateTime"),
    }


class GraphDriveClient:
    """Pass-through calls against ``/me/drive`` and ``/sites/{id}/drive``."""

    def __init__(
        self,
        base_url: str = "https://graph.microsoft.com/v1.0",
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @staticmethod
    def _children_path(parent_id: Optional[str], drive: str = "/me/drive") -> str:
        if not parent_id or parent_id == "root":
            return f"{drive}/root/children"
        return f"{drive}/items/{quote(parent_id, safe='')}/children"

    async def _request(
        self,
        method: str,
        url: str,
        access_token: Optional[str],
        **kwargs: Any,
    ) -> httpx.Response:
        headers = dict(kwargs.pop("headers", {}) or {})
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        if not url.startswith("http"):
            url = f"{self._base_url}{url}"
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Timed out calling Microsoft Graph: {method}") from exc
        except httpx.TransportError as exc:
            raise TransportError(f"Microsoft Graph unreachable: {exc}") from exc

        if not response.is_success:
            body = _response_body(response)
            # Upload session URLs carry a credential in the query string.
            logger.warning(
                "Graph %s %s failed with HTTP %s",
                method,
                url.split("?", 1)[0],
                response.status_code,
            )
            raise GraphApiError(
                _graph_message(body) or f"Graph request failed with HTTP {response.status_code}",
                status_code=response.status_code,
                body=body,
            )
        return response

    async def list_children(
        self,
        access_token: str,
        *,
        folder_id: Optional[str] = None,
        name_prefix: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """List a folder's children, optionally filtered server-side by name prefix."""
        params = {}
        if name_prefix:
            escaped = name_prefix.replace("'", "''")
            params["$filter"] = f"startsWith(name,'{escaped}')"
        response = await self._request(
            "GET", self._children_path(folder_id), access_token, params=params or None
        )
        return [format_drive_item(item) for item in response.json().get("value", [])]

    async def list_children_matching(
        self,
        access_token: str,
        *,
        folder_id: Optional[str] = None,
        names: Iterable[str] = (),
    ) -> List[Dict[str, Any]]:
        """List a folder's children whose names contain any of ``names``."""
        response = await self._request(
            "GET", self._children_path(folder_id), access_token
        )
        items = response.json().get("value", [])
        wanted = [name for name in names if name]
        if wanted:
            items = [
                item
                for item in items
                if any(name in item.get("name", "") for name in wanted)
            ]
        return [format_drive_item(item) for item in items]

    async def create_folder(
        self,
        access_token: str,
        folder_name: str,
        *,
        parent_id: Optional[str] = None,
        drive: str = "/me/drive",
    ) -> Dict[str, Any]:
        response = await self._request(
            "POST",
            self._children_path(parent_id, drive),
            access_token,
            json={"name": folder_name, "folder": {}, CONFLICT_BEHAVIOR: "rename"},
        )
        return response.json()

    async def create_folders(
        self,
        access_token: str,
        folder_names: List[str],
        *,
        parent_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Create the first folder under ``parent_id`` and the rest inside it."""
        created: List[Dict[str, Any]] = []
        for index, name in enumerate(folder_names):
            target = parent_id if index == 0 else created[0]["folderId"]
            folder = await self.create_folder(access_token, name, parent_id=target)
            created.append(
                {
                    "folderId": folder.get("id"),
                    "folderName": folder.get("name"),
                    "driveId": (folder.get("parentReference") or {}).get("driveId"),
                    "webViewLink": folder.get("webUrl"),
                }
            )
        return created

    async def upload_file(
        self,
        access_token: str,
        *,
        file_name: str,
        content: bytes,
        mime_type: str,
        parent_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Upload through a Graph upload session, renaming on conflict."""
        if not parent_id or parent_id == "root":
            parent_path = "/me/drive/root"
        else:
            parent_path = f"/me/drive/items/{quote(parent_id, safe='')}"
        session_path = f"{parent_path}:/{quote(file_name)}:/createUploadSession"

        session = await self._request(
            "POST",
            session_path,
            access_token,
            json={"item": {CONFLICT_BEHAVIOR: "rename"}},
        )
        upload_url = session.json()["uploadUrl"]

        # Upload URLs are pre-authenticated; Graph rejects an Authorization header.
        uploaded = await self._request(
            "PUT",
            upload_url,
            None,
            content=content,
            headers={
                "Content-Length": str(len(content)),
                "Content-Range": f"bytes 0-{len(content) - 1}/{len(content)}",
                "Content-Type": mime_type,
            },
        )
        return uploaded.json()

    async def get_root_site(self, access_token: str) -> Dict[str, Any]:
        response = await self._request("GET", "/sites/root", access_token)
        return response.json()

    async def get_children(
        self,
        access_token: str,
        *,
        parent_id: Optional[str] = None,
        drive: str = "/me/drive",
    ) -> Dict[str, Any]:
        """Return the raw Graph children collection, unformatted."""
        response = await self._request(
            "GET", self._children_path(parent_id, drive), access_token
        )
        return response.json()

    async def list_site_children(self, access_token: str, site_id: str) -> Dict[str, Any]:
        drive = f"/sites/{quote(site_id, safe=',')}/drive"
        return await self.get_children(access_token, drive=drive)

    async def create_site_folder(
        self, access_token: str, site_id: str, folder_name: str, parent_id: str
    ) -> Dict[str, Any]:
        drive = f"/sites/{quote(site_id, safe=',')}/drive"
        return await self.create_folder(
            access_token, folder_name, parent_id=parent_id, drive=drive
        )


def _response_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _graph_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message")
    return None


__all__ = ["GraphApiError", "GraphDriveClient", "format_drive_item"]
