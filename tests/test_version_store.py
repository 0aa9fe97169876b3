"""
Tests for the version store.
"""

import json
import unittest
import uuid
from unittest.mock import AsyncMock

from src.content.repository import InMemoryContentRepository, utcnow
from src.content.version_store import VersionStore
from src.errors import ConflictError, DatastoreError, NotFoundError
from src.types.content import AuthorProfile, ContentItem, ContentStatus, ContentType
from src.types.version import VersionSnapshotUpdate


def body(value: str) -> str:
    return json.dumps([{"type": "paragraph", "content": [{"type": "text", "text": value}]}])


async def make_item(repo, owner_id="user_1") -> ContentItem:
    now = utcnow()
    return await repo.insert_item(ContentItem(
        id=str(uuid.uuid4()),
        type=ContentType.POST,
        title="Post",
        slug=f"post-{uuid.uuid4().hex[:8]}",
        owner_id=owner_id,
        created_at=now,
        updated_at=now,
    ))


class TestCreateVersion(unittest.IsolatedAsyncioTestCase):
    """Tests for VersionStore.create_version."""

    async def asyncSetUp(self):
        self.repo = InMemoryContentRepository()
        self.store = VersionStore(self.repo)
        self.item = await make_item(self.repo)

    async def test_numbers_are_sequential_without_gaps(self):
        for i in range(5):
            await self.store.create_version(self.item.id, title=f"v{i}", body_json=body(str(i)))

        versions = await self.repo.list_versions(self.item.id)
        self.assertEqual(sorted(v.version_number for v in versions), [1, 2, 3, 4, 5])

    async def test_first_version_is_one(self):
        self.assertEqual(await self.store.next_version_number(self.item.id), 1)
        version = await self.store.create_version(self.item.id, title="T", body_json="[]")
        self.assertEqual(version.version_number, 1)

    async def test_non_sequential_number_conflicts(self):
        await self.store.create_version(self.item.id, title="T", body_json="[]")
        with self.assertRaises(ConflictError):
            await self.store.create_version(self.item.id, title="T", body_json="[]", version_number=5)

    async def test_expected_number_is_accepted(self):
        await self.store.create_version(self.item.id, title="T", body_json="[]")
        version = await self.store.create_version(
            self.item.id, title="T", body_json="[]", version_number=2
        )
        self.assertEqual(version.version_number, 2)

    async def test_make_current_moves_draft_pointer(self):
        version = await self.store.create_version(
            self.item.id,
            title="New title",
            summary="New summary",
            body_json=body("x"),
            make_current=True,
        )
        item = await self.repo.get_item(self.item.id)
        self.assertEqual(item.current_version_id, version.id)
        self.assertEqual(item.title, "New title")
        self.assertEqual(item.summary, "New summary")
        self.assertEqual(item.status, ContentStatus.DRAFT)

    async def test_pointer_failure_removes_new_version(self):
        self.repo.update_item = AsyncMock(side_effect=DatastoreError())

        with self.assertRaises(DatastoreError):
            await self.store.create_version(self.item.id, title="T", body_json="[]", make_current=True)

        self.assertIsNone(await self.repo.get_latest_version(self.item.id))


class TestUpdateVersionSnapshot(unittest.IsolatedAsyncioTestCase):
    """Tests for in-place version updates."""

    async def asyncSetUp(self):
        self.repo = InMemoryContentRepository()
        self.store = VersionStore(self.repo)
        self.item = await make_item(self.repo)
        self.version = await self.store.create_version(
            self.item.id, title="T", body_json=body("old"), make_current=True
        )

    async def test_updates_fields_in_place(self):
        updated = await self.store.update_version_snapshot(
            self.version.id,
            VersionSnapshotUpdate(body_json=body("new"), change_description="typo"),
        )
        self.assertEqual(updated.id, self.version.id)
        self.assertEqual(updated.version_number, 1)
        self.assertEqual(updated.body_json, body("new"))
        self.assertEqual(updated.change_description, "typo")
        self.assertEqual(updated.title, "T")

    async def test_published_snapshot_is_immutable(self):
        await self.repo.update_item(self.item.id, {
            "published_version_id": self.version.id,
            "status": ContentStatus.PUBLISHED,
        })
        with self.assertRaises(ConflictError):
            await self.store.update_version_snapshot(
                self.version.id, VersionSnapshotUpdate(body_json=body("edit"))
            )
        stored = await self.repo.get_version(self.version.id)
        self.assertEqual(stored.body_json, body("old"))

    async def test_missing_version(self):
        with self.assertRaises(NotFoundError):
            await self.store.update_version_snapshot("missing", VersionSnapshotUpdate(title="x"))

    async def test_empty_update_is_noop(self):
        result = await self.store.update_version_snapshot(self.version.id, VersionSnapshotUpdate())
        self.assertEqual(result, self.version)


class TestListVersions(unittest.IsolatedAsyncioTestCase):
    """Tests for history listing."""

    async def asyncSetUp(self):
        self.repo = InMemoryContentRepository()
        self.repo.add_profile(AuthorProfile(id="user_1", full_name="Ada Lovelace"))
        self.repo.add_profile(AuthorProfile(id="user_2", username="grace"))
        self.store = VersionStore(self.repo)
        self.item = await make_item(self.repo)

    async def test_newest_first_with_creators(self):
        await self.store.create_version(self.item.id, title="a", body_json="[]", created_by="user_1")
        await self.store.create_version(self.item.id, title="b", body_json="[]", created_by="user_2")
        await self.store.create_version(self.item.id, title="c", body_json="[]", created_by="ghost")
        await self.store.create_version(self.item.id, title="d", body_json="[]")

        versions = await self.store.list_versions(self.item.id)

        self.assertEqual([v.version_number for v in versions], [4, 3, 2, 1])
        self.assertIsNone(versions[0].creator)
        self.assertEqual(versions[1].creator.id, "ghost")
        self.assertIsNone(versions[1].creator.display_name)
        self.assertEqual(versions[2].creator.display_name, "grace")
        self.assertEqual(versions[3].creator.display_name, "Ada Lovelace")

    async def test_get_version_by_number_missing(self):
        with self.assertRaises(NotFoundError):
            await self.store.get_version_by_number(self.item.id, 3)


if __name__ == "__main__":
    unittest.main()
