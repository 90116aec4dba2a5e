try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

import base64
import copy

import httpx
import pytest
from fastapi import HTTPException

from broker.api.drive import decode_upload
from broker.clients.graph_drive import GraphApiError
from broker.main import app
from broker.services.api_keys import ApiKeyService

HEADERS = {
    "x-salesforce-environment": "sandbox",
    "x-salesforce-organization-id": "org42",
}
TENANT = "ms_tokens_sandbox_org42"


class FakeManager:
    def __init__(self) -> None:
        self.tenants: list[str] = []

    async def get_valid_access_token(self, tenant, *, redirect_uri=None):
        self.tenants.append(tenant)
        return "AT1"


class FakeGraphClient:
    def __init__(self) -> None:
        self.calls: list[tuple] = []
        self.error: Exception | None = None

    async def list_children(self, access_token, *, folder_id=None, name_prefix=None):
        self.calls.append(("list", access_token, folder_id, name_prefix))
        if self.error is not None:
            raise self.error
        return [
            {
                "id": "file-1",
                "name": "Report.pdf",
                "mimeType": "application/pdf",
                "webViewLink": "https://onedrive/file-1",
                "iconLink": "file-icon",
                "modifiedTime": "2024-05-01T10:00:00Z",
            }
        ]

    async def list_children_matching(self, access_token, *, folder_id=None, names=()):
        self.calls.append(("listv2", access_token, folder_id, list(names)))
        return []

    async def upload_file(self, access_token, *, file_name, content, mime_type, parent_id=None):
        self.calls.append(("upload", access_token, file_name, content, mime_type, parent_id))
        return {"id": "file-9", "name": file_name, "webUrl": "https://onedrive/file-9"}

    async def create_folder(self, access_token, folder_name, *, parent_id=None, drive="/me/drive"):
        self.calls.append(("folder", folder_name, parent_id))
        return {"id": "folder-1", "name": folder_name}

    async def create_folders(self, access_token, folder_names, *, parent_id=None):
        self.calls.append(("folders", list(folder_names), parent_id))
        return [{"folderId": f"id-{name}", "folderName": name} for name in folder_names]

    async def get_children(self, access_token, *, parent_id=None, drive="/me/drive"):
        self.calls.append(("children", access_token, parent_id, drive))
        return {"value": [{"id": "file-1", "name": "Report.pdf", "file": {}}]}

    async def get_root_site(self, access_token):
        return {"id": "host,abc,def", "displayName": "Team Site"}

    async def list_site_children(self, access_token, site_id):
        self.calls.append(("site-children", site_id))
        return {"value": []}

    async def create_site_folder(self, access_token, site_id, folder_name, parent_id):
        self.calls.append(("site-folder", site_id, folder_name, parent_id))
        return {"id": "sp-folder", "name": folder_name}


@pytest.fixture()
def drive_overrides():
    from broker import dependencies
    from broker.core.config import get_settings

    manager = FakeManager()
    graph = FakeGraphClient()
    api_keys = ApiKeyService(secret="drive-secret")
    settings = copy.deepcopy(get_settings())
    settings.max_upload_bytes = 16

    app.dependency_overrides.update(
        {
            dependencies.get_token_manager: lambda: manager,
            dependencies.get_graph_client: lambda: graph,
            dependencies.get_api_key_service: lambda: api_keys,
            dependencies.get_app_settings: lambda: settings,
        }
    )

    headers = {**HEADERS, "Authorization": f"Bearer {api_keys.issue({'clientName': 'crm'})}"}
    yield manager, graph, headers

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://testserver"
    )


def test_decode_upload_accepts_data_url() -> None:
    encoded = base64.b64encode(b"hello").decode()

    assert decode_upload(encoded) == b"hello"
    assert decode_upload(f"data:text/plain;base64,{encoded}") == b"hello"


def test_decode_upload_rejects_garbage() -> None:
    with pytest.raises(HTTPException) as exc_info:
        decode_upload("***not base64***")

    assert exc_info.value.status_code == 400


@pytest.mark.anyio
async def test_drive_routes_require_api_key(drive_overrides):
    manager, graph, _ = drive_overrides
    async with _client() as client:
        response = await client.get("/onedrive-api/list", headers=HEADERS)

    assert response.status_code == 401
    assert manager.tenants == []
    assert graph.calls == []


@pytest.mark.anyio
async def test_list_passes_prefix_and_tenant_token(drive_overrides):
    manager, graph, headers = drive_overrides
    async with _client() as client:
        response = await client.get(
            "/onedrive-api/list",
            params={"folderId": "folder-1", "nameFolder": "Rep"},
            headers=headers,
        )

    assert response.status_code == 200
    assert response.json()[0]["iconLink"] == "file-icon"
    assert manager.tenants == [TENANT]
    assert graph.calls == [("list", "AT1", "folder-1", "Rep")]


@pytest.mark.anyio
async def test_listv2_splits_names(drive_overrides):
    _, graph, headers = drive_overrides
    async with _client() as client:
        response = await client.get(
            "/onedrive-api/listv2", params={"nameFolders": "A, B"}, headers=headers
        )

    assert response.status_code == 200
    assert graph.calls == [("listv2", "AT1", None, ["A", "B"])]


@pytest.mark.anyio
async def test_upload_decodes_payload(drive_overrides):
    _, graph, headers = drive_overrides
    payload = base64.b64encode(b"hello").decode()
    async with _client() as client:
        response = await client.post(
            "/onedrive-api/upload",
            params={"fileName": "a.txt", "mimeType": "text/plain"},
            json={"file": f"data:text/plain;base64,{payload}"},
            headers=headers,
        )

    assert response.status_code == 200
    assert response.json()["message"] == "File uploaded with ID: file-9"
    assert graph.calls == [("upload", "AT1", "a.txt", b"hello", "text/plain", "root")]


@pytest.mark.anyio
async def test_upload_rejects_oversized_file(drive_overrides):
    _, graph, headers = drive_overrides
    payload = base64.b64encode(b"x" * 17).decode()
    async with _client() as client:
        response = await client.post(
            "/onedrive-api/upload",
            params={"fileName": "big.bin", "mimeType": "application/octet-stream"},
            json={"file": payload},
            headers=headers,
        )

    assert response.status_code == 413
    assert graph.calls == []


@pytest.mark.anyio
async def test_upload_requires_file_name(drive_overrides):
    _, _, headers = drive_overrides
    async with _client() as client:
        response = await client.post(
            "/onedrive-api/upload",
            params={"mimeType": "text/plain"},
            json={"file": "aGVsbG8="},
            headers=headers,
        )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


@pytest.mark.anyio
async def test_create_folders_chain(drive_overrides):
    _, graph, headers = drive_overrides
    async with _client() as client:
        response = await client.post(
            "/onedrive-api/folders",
            json={"folders": [{"folderName": "Client"}, {"folderName": "2024"}]},
            headers=headers,
        )

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Folders created successfully"
    assert [folder["folderId"] for folder in body["folders"]] == ["id-Client", "id-2024"]
    assert graph.calls == [("folders", ["Client", "2024"], None)]


@pytest.mark.anyio
async def test_graph_errors_keep_upstream_status(drive_overrides):
    _, graph, headers = drive_overrides
    graph.error = GraphApiError("Item not found", status_code=404)
    async with _client() as client:
        response = await client.get("/onedrive-api/list", headers=headers)

    assert response.status_code == 404
    assert response.json() == {"error": "graph_error", "detail": "Item not found"}


@pytest.mark.anyio
async def test_sharepoint_routes(drive_overrides):
    _, graph, headers = drive_overrides
    async with _client() as client:
        sites = await client.get("/sharepoint/sites", headers=headers)
        children = await client.get("/sharepoint/folders/host,abc,def", headers=headers)
        created = await client.post(
            "/sharepoint/folder",
            json={"folderName": "Docs", "siteId": "host,abc,def", "parentFolderId": "p1"},
            headers=headers,
        )

    assert sites.json() == {"value": [{"id": "host,abc,def", "displayName": "Team Site"}]}
    assert children.json() == {"value": []}
    assert created.json()["name"] == "Docs"
    assert graph.calls == [
        ("site-children", "host,abc,def"),
        ("site-folder", "host,abc,def", "Docs", "p1"),
    ]


@pytest.mark.anyio
async def test_onedrive_folders_returns_raw_root_children(drive_overrides):
    manager, graph, headers = drive_overrides
    async with _client() as client:
        response = await client.get("/onedrive/folders", headers=headers)

    assert response.status_code == 200
    assert response.json() == {"value": [{"id": "file-1", "name": "Report.pdf", "file": {}}]}
    assert manager.tenants == [TENANT]
    assert graph.calls == [("children", "AT1", None, "/me/drive")]


@pytest.mark.anyio
async def test_onedrive_folder_defaults_parent_to_root(drive_overrides):
    _, graph, headers = drive_overrides
    async with _client() as client:
        created = await client.post(
            "/onedrive/folder", json={"folderName": "Inbox"}, headers=headers
        )
        missing = await client.post("/onedrive/folder", json={}, headers=headers)

    assert created.status_code == 200
    assert created.json() == {"id": "folder-1", "name": "Inbox"}
    assert missing.status_code == 400
    assert graph.calls == [("folder", "Inbox", "root")]


@pytest.mark.anyio
async def test_onedrive_folder_routes_require_api_key(drive_overrides):
    _, graph, _ = drive_overrides
    async with _client() as client:
        response = await client.get("/onedrive/folders", headers=HEADERS)

    assert response.status_code == 401
    assert graph.calls == []
