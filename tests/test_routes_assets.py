"""
Tests for asset upload and garbage-collection routes.
"""

import json

import pytest
from fastapi.testclient import TestClient

from app.auth import get_current_user
from src.assets.storage import InMemoryObjectStorage, ObjectStorage
from src.assets.tracker import AssetReferenceTracker
from src.content.repository import ContentRepository, InMemoryContentRepository
from src.content.service import ContentService, ContentServiceFactory

OWNER = "user_owner"
CDN = "https://cdn.example.test"
GC_HEADERS = {"X-GC-Secret": "test-gc-secret"}


def image_doc(url):
    return json.dumps([{"type": "image", "props": {"url": url}}])


@pytest.fixture
def repository():
    repo = InMemoryContentRepository()
    ContentRepository.set_repository(repo)
    return repo


@pytest.fixture
def storage():
    store = InMemoryObjectStorage(CDN)
    ObjectStorage.set_storage(store)
    return store


@pytest.fixture
def service(repository, storage):
    svc = ContentService(repository, tracker=AssetReferenceTracker(repository, cdn_url=CDN))
    ContentServiceFactory.set_service(svc)
    return svc


@pytest.fixture
def client(service):
    from server import app

    app.dependency_overrides[get_current_user] = lambda: OWNER
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def item(client):
    response = client.post("/api/admin/posts", json={"title": "Gallery", "body_json": "[]"})
    return response.json()["item"]


def upload(client, storage, item, filename="photo.png"):
    """Sign an upload and pretend the browser PUT the file."""
    signed = client.post(
        "/api/assets/presigned-url",
        json={"item_id": item["id"], "filename": filename, "content_type": "image/png"},
    ).json()
    storage.put_object(signed["object_key"], b"png")
    return signed


class TestPresignedUrl:
    """Tests for POST /api/assets/presigned-url."""

    def test_key_is_in_item_namespace(self, client, storage, item):
        response = client.post(
            "/api/assets/presigned-url",
            json={"item_id": item["id"], "filename": "my photo.png", "content_type": "image/png"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["object_key"].startswith(f"assets/{item['id']}/")
        assert data["object_key"].endswith("-my-photo.png")
        assert data["file_url"] == f"{CDN}/{data['object_key']}"
        assert "upload=1" in data["url"]

    def test_non_image_is_rejected(self, client, item):
        response = client.post(
            "/api/assets/presigned-url",
            json={"item_id": item["id"], "filename": "notes.pdf", "content_type": "application/pdf"},
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "VALIDATION_ERROR"

    def test_other_users_item_is_rejected(self, client, service, item):
        client.app.dependency_overrides[get_current_user] = lambda: "someone_else"
        response = client.post(
            "/api/assets/presigned-url",
            json={"item_id": item["id"], "filename": "a.png", "content_type": "image/png"},
        )
        assert response.status_code == 403


class TestRecordImage:
    """Tests for POST /api/assets/record-image."""

    def test_records_embedded_image(self, client, storage, repository, item):
        signed = upload(client, storage, item)

        response = client.post(
            "/api/assets/record-image",
            json={"item_id": item["id"], "url": signed["file_url"], "object_key": signed["object_key"]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["asset"]["object_key"] == signed["object_key"]
        assert data["usage_type"] == "embedded"
        assert data["version_id"] == item["current_version_id"]

    def test_cover_sets_item_cover(self, client, storage, item):
        signed = upload(client, storage, item, "cover.png")

        client.post(
            "/api/assets/record-image",
            json={"item_id": item["id"], "url": signed["file_url"], "usage_type": "cover"},
        )

        view = client.get(f"/api/admin/content/{item['id']}").json()["item"]
        assert view["cover_image"] == signed["file_url"]

    def test_foreign_namespace_is_rejected(self, client, item):
        response = client.post(
            "/api/assets/record-image",
            json={"item_id": item["id"], "url": f"{CDN}/assets/another-item/x.png"},
        )
        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_INPUT"


class TestGarbageCollection:
    """Tests for POST /api/assets/gc."""

    def test_requires_secret(self, client):
        assert client.post("/api/assets/gc").status_code == 401
        assert client.post("/api/assets/gc", headers={"X-GC-Secret": "wrong"}).status_code == 401

    def test_empty_queue(self, client):
        response = client.post("/api/assets/gc", headers=GC_HEADERS)

        assert response.status_code == 200
        data = response.json()
        assert data["processed"] == 0
        assert data["batchSize"] == 25
        assert "skippedReferenced" in data

    def test_removed_image_is_collected(self, client, storage, service, item):
        signed = upload(client, storage, item)
        client.put(
            f"/api/admin/content/{item['id']}/draft",
            json={"body_json": image_doc(signed["file_url"]), "schedule_snapshot": False},
        )
        client.post(
            "/api/assets/record-image",
            json={"item_id": item["id"], "url": signed["file_url"]},
        )
        client.put(
            f"/api/admin/content/{item['id']}/draft",
            json={"body_json": "[]", "schedule_snapshot": False},
        )

        response = client.post("/api/assets/gc", headers=GC_HEADERS, json={"batchSize": 10})

        data = response.json()
        assert (data["processed"], data["deleted"], data["batchSize"]) == (1, 1, 10)
        assert signed["object_key"] not in storage.objects

    def test_referenced_image_survives(self, client, storage, repository, item):
        signed = upload(client, storage, item)
        client.put(
            f"/api/admin/content/{item['id']}/draft",
            json={"body_json": image_doc(signed["file_url"]), "schedule_snapshot": False},
        )
        client.post(
            "/api/assets/record-image",
            json={"item_id": item["id"], "url": signed["file_url"]},
        )

        response = client.post("/api/assets/gc", headers=GC_HEADERS)

        assert response.json()["processed"] == 0
        assert signed["object_key"] in storage.objects

    def test_deleted_item_assets_are_collected(self, client, storage, service, item):
        signed = upload(client, storage, item)
        client.post(
            "/api/assets/record-image",
            json={"item_id": item["id"], "url": signed["file_url"]},
        )

        deleted = client.delete(f"/api/admin/content/{item['id']}").json()
        assert deleted["queued_asset_keys"] == [signed["object_key"]]

        data = client.post("/api/assets/gc", headers=GC_HEADERS).json()
        assert data["deleted"] == 1
        assert storage.objects == {}
