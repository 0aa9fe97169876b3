"""
Tests for the admin, version and public content routes.

Tests cover:
- Creating, listing, editing and deleting items
- Saving, listing, comparing and restoring versions
- Publishing and what readers see afterwards
- Tag management
- Ownership checks and error responses
"""

import json

import pytest
from fastapi.testclient import TestClient

from app.auth import get_current_user, get_optional_user
from src.assets.storage import InMemoryObjectStorage, ObjectStorage
from src.assets.tracker import AssetReferenceTracker
from src.content.repository import ContentRepository, InMemoryContentRepository
from src.content.service import ContentService, ContentServiceFactory

OWNER = "user_owner"
OTHER = "user_other"


def body(*paragraphs):
    return json.dumps([
        {"type": "paragraph", "content": [{"type": "text", "text": p}]}
        for p in paragraphs
    ])


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def repository():
    repo = InMemoryContentRepository()
    ContentRepository.set_repository(repo)
    return repo


@pytest.fixture
def service(repository):
    """In-memory content service installed as the app's service."""
    ObjectStorage.set_storage(InMemoryObjectStorage())
    svc = ContentService(
        repository,
        tracker=AssetReferenceTracker(repository, cdn_url="https://cdn.example.test"),
        autosave_delay=0.01,
        snapshot_delay=0.01,
    )
    ContentServiceFactory.set_service(svc)
    return svc


@pytest.fixture
def user():
    """Acting user; tests switch identity by changing ``user["id"]``."""
    return {"id": OWNER}


@pytest.fixture
def app(service, user):
    from server import app as fastapi_app

    fastapi_app.dependency_overrides[get_current_user] = lambda: user["id"]
    fastapi_app.dependency_overrides[get_optional_user] = lambda: user["id"]
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    return TestClient(app)


def create_post(client, title="Hello World", body_json=None, publish=False):
    response = client.post(
        "/api/admin/posts",
        json={"title": title, "body_json": body_json, "publish": publish},
    )
    assert response.status_code == 201, response.text
    return response.json()["item"]


# =============================================================================
# Admin content
# =============================================================================


class TestAdminContent:
    """Tests for /api/admin item endpoints."""

    def test_create_post(self, client):
        item = create_post(client, title="Hello World!", body_json=body("hi"))

        assert item["slug"] == "hello-world"
        assert item["type"] == "post"
        assert item["status"] == "draft"
        assert item["current_version_id"] is not None
        assert item["published_version_id"] is None

    def test_create_and_publish(self, client):
        item = create_post(client, body_json=body("hi"), publish=True)
        assert item["status"] == "published"
        assert item["published_version_id"] == item["current_version_id"]

    def test_duplicate_slug_returns_409(self, client):
        create_post(client, title="Same")
        response = client.post("/api/admin/posts", json={"title": "Same"})

        assert response.status_code == 409
        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "RESOURCE_CONFLICT"

    def test_unknown_collection_returns_422(self, client):
        response = client.post("/api/admin/pages", json={"title": "x"})
        assert response.status_code == 422

    def test_list_own_content_includes_drafts(self, client, user):
        create_post(client, title="Mine")
        user["id"] = OTHER
        create_post(client, title="Theirs")
        user["id"] = OWNER

        response = client.get("/api/admin/posts")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["items"][0]["title"] == "Mine"

    def test_get_item_view(self, client):
        item = create_post(client, body_json=body("draft body"))

        response = client.get(f"/api/admin/content/{item['id']}")

        assert response.status_code == 200
        view = response.json()["item"]
        assert view["is_draft"] is True
        assert view["body_json"] == body("draft body")

    def test_update_metadata(self, client):
        item = create_post(client, body_json=body("x"))

        response = client.patch(
            f"/api/admin/content/{item['id']}",
            json={"title": "New title", "slug": "New Slug", "summary": "Short"},
        )

        assert response.status_code == 200
        updated = response.json()["item"]
        assert updated["title"] == "New title"
        assert updated["slug"] == "new-slug"
        assert updated["summary"] == "Short"

    def test_reorder_projects(self, client):
        a = client.post("/api/admin/projects", json={"title": "A"}).json()["item"]
        b = client.post("/api/admin/projects", json={"title": "B"}).json()["item"]

        response = client.post("/api/admin/projects/reorder", json={"item_ids": [b["id"], a["id"]]})

        assert response.status_code == 200
        assert [(i["id"], i["sort_order"]) for i in response.json()["items"]] == [
            (b["id"], 0),
            (a["id"], 1),
        ]

    def test_delete_item(self, client):
        item = create_post(client, body_json=body("x"))

        response = client.delete(f"/api/admin/content/{item['id']}")

        assert response.status_code == 200
        assert response.json()["item_id"] == item["id"]
        assert client.get(f"/api/admin/content/{item['id']}").status_code == 404

    def test_missing_item_returns_404(self, client):
        response = client.get("/api/admin/content/does-not-exist")
        assert response.status_code == 404
        assert response.json()["error_code"] == "CONTENT_NOT_FOUND"

    def test_other_user_gets_403(self, client, user):
        item = create_post(client, body_json=body("x"))
        user["id"] = OTHER

        assert client.get(f"/api/admin/content/{item['id']}").status_code == 403
        assert client.delete(f"/api/admin/content/{item['id']}").status_code == 403
        response = client.post(f"/api/admin/content/{item['id']}/publish")
        assert response.status_code == 403
        assert response.json()["error_code"] == "PERMISSION_DENIED"


class TestAuthenticationRequired:
    """Admin routes reject anonymous callers."""

    def test_missing_token_returns_401(self, service):
        from server import app as fastapi_app

        client = TestClient(fastapi_app)
        response = client.get("/api/admin/posts")

        assert response.status_code == 401
        assert response.json()["error_code"] == "AUTHENTICATION_REQUIRED"


# =============================================================================
# Versions and publishing
# =============================================================================


class TestVersionRoutes:
    """Tests for /api/admin/content/{id}/... version endpoints."""

    def test_autosave_draft(self, client):
        item = create_post(client)

        response = client.put(
            f"/api/admin/content/{item['id']}/draft",
            json={"body_json": body("typing"), "schedule_snapshot": False},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["version_number"] == 1
        assert data["save_status"] == "saved"

        status = client.get(f"/api/admin/content/{item['id']}/save-status").json()
        assert status["save_status"] == "saved"

    def test_manual_save_creates_and_updates(self, client):
        item = create_post(client, body_json=body("one two three four five"))

        minor = client.post(
            f"/api/admin/content/{item['id']}/versions",
            json={"draft": {"body_json": body("one two three four five")}},
        ).json()
        assert minor["result"]["action"] == "updated"
        assert minor["result"]["version_number"] == 1

        major = client.post(
            f"/api/admin/content/{item['id']}/versions",
            json={"draft": {"body_json": body("something else entirely")}, "change_description": "Rewrite"},
        ).json()
        assert major["result"]["action"] == "created"
        assert major["result"]["version_number"] == 2

    def test_list_and_get_versions(self, client):
        item = create_post(client, body_json=body("alpha"))
        client.post(
            f"/api/admin/content/{item['id']}/versions",
            json={"draft": {"body_json": body("beta")}, "force_new_version": True},
        )

        listing = client.get(f"/api/admin/content/{item['id']}/versions").json()
        assert listing["total"] == 2
        assert [v["version_number"] for v in listing["versions"]] == [2, 1]
        assert listing["versions"][0]["creator"]["id"] == OWNER

        detail = client.get(f"/api/admin/content/{item['id']}/versions/1")
        assert detail.status_code == 200
        assert detail.json()["version"]["body_json"] == body("alpha")

        missing = client.get(f"/api/admin/content/{item['id']}/versions/9")
        assert missing.status_code == 404
        assert missing.json()["error_code"] == "VERSION_NOT_FOUND"

    def test_compare_versions(self, client):
        item = create_post(client, body_json=body("alpha"))
        client.post(
            f"/api/admin/content/{item['id']}/versions",
            json={"draft": {"body_json": body("beta")}, "force_new_version": True},
        )

        response = client.get(f"/api/admin/content/{item['id']}/versions/compare?v1=2&v2=1")

        assert response.status_code == 200
        diff = response.json()
        assert (diff["from_version"], diff["to_version"]) == (1, 2)
        assert [(l["type"], l["content"]) for l in diff["lines"]] == [
            ("removed", "alpha"),
            ("added", "beta"),
        ]
        assert diff["bar"] == "+++++-----"

    def test_restore_version(self, client):
        item = create_post(client, body_json=body("alpha"))
        client.post(
            f"/api/admin/content/{item['id']}/versions",
            json={"draft": {"body_json": body("beta")}, "force_new_version": True},
        )

        response = client.post(f"/api/admin/content/{item['id']}/versions/1/restore")

        assert response.status_code == 200
        version = response.json()["version"]
        assert version["version_number"] == 3
        assert version["body_json"] == body("alpha")
        assert version["change_description"] == "Restored to version 1"

    def test_publish_and_draft_changes(self, client):
        item = create_post(client, body_json=body("live text"))

        published = client.post(f"/api/admin/content/{item['id']}/publish")
        assert published.status_code == 200
        assert published.json()["result"]["version_number"] == 1

        changes = client.get(f"/api/admin/content/{item['id']}/draft-changes").json()
        assert changes["has_draft_changes"] is False

        client.put(
            f"/api/admin/content/{item['id']}/draft",
            json={"body_json": body("completely rewritten words"), "schedule_snapshot": False},
        )
        changes = client.get(f"/api/admin/content/{item['id']}/draft-changes").json()
        assert changes["has_draft_changes"] is True
        assert changes["diff"]["added"] == 1
        assert changes["diff"]["removed"] == 1

    def test_publish_with_draft_body(self, client):
        item = create_post(client)

        response = client.post(
            f"/api/admin/content/{item['id']}/publish",
            json={"draft": {"title": "Launch", "body_json": body("final")}},
        )

        assert response.status_code == 200
        view = client.get("/api/public/posts/hello-world").json()["item"]
        assert view["title"] == "Launch"
        assert view["body_json"] == body("final")

    def test_unpublish(self, client):
        item = create_post(client, body_json=body("x"), publish=True)

        response = client.post(f"/api/admin/content/{item['id']}/unpublish")

        assert response.status_code == 200
        assert response.json()["item"]["status"] == "draft"
        assert client.get("/api/public/posts/hello-world").status_code == 404


# =============================================================================
# Public routes
# =============================================================================


class TestPublicRoutes:
    """Tests for /api/public reader endpoints."""

    def test_unpublished_post_is_not_found(self, client, user):
        create_post(client, body_json=body("secret"))
        user["id"] = None

        response = client.get("/api/public/posts/hello-world")

        assert response.status_code == 404
        assert response.json()["error_code"] == "NOT_YET_PUBLISHED"

    def test_unknown_slug(self, client):
        response = client.get("/api/public/posts/nothing-here")
        assert response.status_code == 404
        assert response.json()["error_code"] == "CONTENT_NOT_FOUND"

    def test_reader_sees_snapshot_not_draft(self, client, user):
        item = create_post(client, title="Public", body_json=body("public text"), publish=True)
        client.patch(f"/api/admin/content/{item['id']}", json={"title": "Draft title"})
        client.put(
            f"/api/admin/content/{item['id']}/draft",
            json={"body_json": body("draft text"), "schedule_snapshot": False},
        )
        user["id"] = None

        view = client.get("/api/public/posts/public").json()["item"]
        assert view["title"] == "Public"
        assert view["body_json"] == body("public text")
        assert view["is_draft"] is False

        listing = client.get("/api/public/posts").json()
        assert listing["total"] == 1
        assert listing["items"][0]["title"] == "Public"

    def test_owner_preview_sees_draft(self, client):
        item = create_post(client, title="Public", body_json=body("public text"), publish=True)
        client.put(
            f"/api/admin/content/{item['id']}/draft",
            json={"body_json": body("draft text"), "schedule_snapshot": False},
        )

        view = client.get("/api/public/posts/public?preview=true").json()["item"]

        assert view["is_draft"] is True
        assert view["body_json"] == body("draft text")

    def test_listing_filters_by_tag(self, client):
        tag = client.post("/api/admin/tags", json={"name": "Python"}).json()["tag"]
        tagged = create_post(client, title="Tagged", body_json=body("x"), publish=True)
        create_post(client, title="Untagged", body_json=body("y"), publish=True)
        client.put(f"/api/admin/content/{tagged['id']}/tags/{tag['id']}")

        listing = client.get("/api/public/posts?tag=python").json()
        assert [i["slug"] for i in listing["items"]] == ["tagged"]
        assert listing["items"][0]["tags"][0]["slug"] == "python"

        assert client.get("/api/public/posts?tag=unknown").json()["total"] == 0

    def test_overview(self, client):
        create_post(client, title="Post", body_json=body("x"), publish=True)
        client.post("/api/admin/projects", json={"title": "Project", "body_json": body("y"), "publish": True})
        create_post(client, title="Draft only")

        data = client.get("/api/public/overview").json()

        assert data["post_count"] == 1
        assert data["project_count"] == 1
        assert [p["slug"] for p in data["recent_projects"]] == ["project"]

    def test_public_tags(self, client):
        client.post("/api/admin/tags", json={"name": "Rust"})
        tags = client.get("/api/public/tags").json()["tags"]
        assert [t["slug"] for t in tags] == ["rust"]


# =============================================================================
# Tags
# =============================================================================


class TestTagRoutes:
    """Tests for /api/admin/tags."""

    def test_create_rename_delete(self, client):
        created = client.post("/api/admin/tags", json={"name": "Machine Learning"})
        assert created.status_code == 201
        tag = created.json()["tag"]
        assert tag["slug"] == "machine-learning"

        renamed = client.patch(f"/api/admin/tags/{tag['id']}", json={"name": "ML"})
        assert renamed.json()["tag"]["slug"] == "ml"

        assert client.delete(f"/api/admin/tags/{tag['id']}").status_code == 204
        assert client.get("/api/admin/tags").json()["tags"] == []

    def test_duplicate_tag_returns_409(self, client):
        client.post("/api/admin/tags", json={"name": "Go"})
        response = client.post("/api/admin/tags", json={"name": "go"})
        assert response.status_code == 409

    def test_unknown_tag_returns_404(self, client):
        assert client.delete("/api/admin/tags/missing").status_code == 404
