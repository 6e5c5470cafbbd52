"""
tests/test_upload.py
Uploads against a fake media storage backend.
"""

import pytest
from httpx import AsyncClient

from services.upload.service import get_media_storage
from shared.models.models import User
from shared.utils.exceptions import StorageError
from tests.conftest import auth_headers


class FakeStorage:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.uploaded = []
        self.deleted = []

    async def upload(self, data, filename, owner_id):
        if self.fail:
            raise StorageError("Failed to upload file to storage")
        public_id = f"collabbridge/{owner_id}/{filename}"
        self.uploaded.append(public_id)
        return {"url": f"https://cdn.example.com/{public_id}", "public_id": public_id,
                "original_name": filename, "size": len(data), "format": "png"}

    async def delete(self, public_id):
        if public_id in self.uploaded:
            self.deleted.append(public_id)
            return True
        return False


@pytest.fixture
def storage(app):
    fake = FakeStorage()
    app.dependency_overrides[get_media_storage] = lambda: fake
    return fake


def png(name: str = "shot.png", data: bytes = b"\x89PNG fake bytes"):
    return (name, data, "image/png")


@pytest.mark.asyncio
async def test_upload_single(client: AsyncClient, storage: FakeStorage, professional: User):
    response = await client.post("/api/upload", files={"file": png()}, headers=auth_headers(professional))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["publicId"] == f"collabbridge/{professional.id}/shot.png"
    assert data["originalName"] == "shot.png"
    assert data["size"] == len(b"\x89PNG fake bytes")


@pytest.mark.asyncio
async def test_upload_requires_auth(client: AsyncClient, storage: FakeStorage):
    response = await client.post("/api/upload", files={"file": png()})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_unsupported_type_rejected(client: AsyncClient, storage: FakeStorage, professional: User):
    response = await client.post(
        "/api/upload",
        files={"file": ("script.sh", b"echo hi", "text/x-shellscript")},
        headers=auth_headers(professional),
    )
    assert response.status_code == 400
    assert storage.uploaded == []


@pytest.mark.asyncio
async def test_empty_file_rejected(client: AsyncClient, storage: FakeStorage, professional: User):
    response = await client.post("/api/upload", files={"file": png(data=b"")}, headers=auth_headers(professional))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_storage_failure_is_502(app, client: AsyncClient, professional: User):
    app.dependency_overrides[get_media_storage] = lambda: FakeStorage(fail=True)
    response = await client.post("/api/upload", files={"file": png()}, headers=auth_headers(professional))
    assert response.status_code == 502
    assert response.json()["error"] == "STORAGE_ERROR"


@pytest.mark.asyncio
async def test_upload_multiple(client: AsyncClient, storage: FakeStorage, professional: User):
    response = await client.post(
        "/api/upload/multiple",
        files=[("files", png("a.png")), ("files", png("b.png"))],
        headers=auth_headers(professional),
    )
    assert response.status_code == 201
    assert [f["originalName"] for f in response.json()["data"]] == ["a.png", "b.png"]


@pytest.mark.asyncio
async def test_only_owner_deletes(client: AsyncClient, storage: FakeStorage, planner: User, professional: User):
    public_id = (await client.post(
        "/api/upload", files={"file": png()}, headers=auth_headers(professional)
    )).json()["data"]["publicId"]

    forbidden = await client.delete(f"/api/upload/{public_id}", headers=auth_headers(planner))
    assert forbidden.status_code == 403

    deleted = await client.delete(f"/api/upload/{public_id}", headers=auth_headers(professional))
    assert deleted.status_code == 200
    assert storage.deleted == [public_id]

    missing = await client.delete(
        f"/api/upload/collabbridge/{professional.id}/nothing.png", headers=auth_headers(professional)
    )
    assert missing.status_code == 404
