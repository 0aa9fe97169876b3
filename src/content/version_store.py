"""
Version Store.

Snapshot history for content items:
- Server-side contiguous numbering (1, 2, 3, ... never reused)
- Creating a version and pointing the item's draft at it
- In-place updates of unpublished versions
- History listings with creators resolved in one batch

Creating a version and moving the item pointer are two writes; if the second
one fails the new version is deleted again so no orphan version is left
behind.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from src.assets.tracker import AssetReferenceTracker
from src.errors import ConflictError, NotFoundError
from src.types.version import (
    ContentVersion,
    ContentVersionWithCreator,
    SnapshotStatus,
    VersionCreator,
    VersionSnapshotUpdate,
)

from .repository import BaseContentRepository, utcnow

logger = logging.getLogger(__name__)


class VersionStore:
    """Create, update and list content versions."""

    def __init__(
        self,
        repository: BaseContentRepository,
        tracker: Optional[AssetReferenceTracker] = None,
    ) -> None:
        self.repository = repository
        self.tracker = tracker

    async def next_version_number(self, item_id: str) -> int:
        latest = await self.repository.get_latest_version(item_id)
        return latest.version_number + 1 if latest else 1

    async def create_version(
        self,
        item_id: str,
        title: str,
        body_json: str,
        summary: Optional[str] = None,
        created_by: Optional[str] = None,
        change_description: Optional[str] = None,
        snapshot_status: SnapshotStatus = SnapshotStatus.DRAFT,
        version_number: Optional[int] = None,
        make_current: bool = False,
        clone_refs_from: Optional[str] = None,
    ) -> ContentVersion:
        """
        Insert a new version of an item.

        Args:
            item_id: Owning item.
            title: Title snapshot.
            body_json: Serialized block tree.
            summary: Summary snapshot.
            created_by: Acting user.
            change_description: Human-readable reason for the version.
            snapshot_status: Informational lifecycle label.
            version_number: Expected number; must equal the next free number.
            make_current: Point the item's draft (and title/summary) at the new version.
            clone_refs_from: Version whose asset refs are copied onto the new one.

        Returns:
            The stored version.

        Raises:
            ConflictError: If the number is not the next one or was taken concurrently.
        """
        expected = await self.next_version_number(item_id)
        if version_number is not None and version_number != expected:
            raise ConflictError(
                f"Version number {version_number} is not the next version (expected {expected})",
                resource_type="content_version",
            )

        version = await self.repository.insert_version(ContentVersion(
            id=str(uuid.uuid4()),
            content_item_id=item_id,
            version_number=expected,
            title=title or "",
            summary=summary,
            body_json=body_json or "[]",
            snapshot_status=snapshot_status,
            created_by=created_by,
            change_description=change_description,
            created_at=utcnow(),
        ))

        if make_current:
            try:
                await self.repository.update_item(item_id, {
                    "current_version_id": version.id,
                    "title": version.title,
                    "summary": version.summary,
                })
            except Exception:
                logger.error(
                    f"Failed to point item {item_id} at version {version.version_number}; "
                    "removing the new version"
                )
                await self.repository.delete_version(version.id)
                raise

        if self.tracker is not None:
            if clone_refs_from:
                await self.tracker.clone_refs(clone_refs_from, version.id)
            await self.tracker.sync_embedded_refs(item_id, version.id, version.body_json)

        logger.info(
            f"Created version {version.version_number} for item {item_id}"
            + (f" ({change_description})" if change_description else "")
        )
        return version

    async def update_version_snapshot(
        self,
        version_id: str,
        update: VersionSnapshotUpdate,
    ) -> ContentVersion:
        """
        Rewrite fields of an unpublished version in place.

        Raises:
            NotFoundError: If the version does not exist.
            ConflictError: If the version is the item's published snapshot.
        """
        version = await self.repository.get_version(version_id)
        if version is None:
            raise NotFoundError(resource_type="content_version", resource_id=version_id)

        item = await self.repository.get_item(version.content_item_id)
        if item is not None and item.published_version_id == version_id:
            raise ConflictError(
                "Published versions cannot be modified",
                resource_type="content_version",
            )

        fields: Dict[str, Any] = update.model_dump(exclude_none=True)
        if not fields:
            return version

        updated = await self.repository.update_version(version_id, fields)
        if self.tracker is not None and "body_json" in fields and fields["body_json"] != version.body_json:
            await self.tracker.sync_embedded_refs(updated.content_item_id, updated.id, updated.body_json)
        return updated

    async def get_version(self, version_id: str) -> ContentVersion:
        version = await self.repository.get_version(version_id)
        if version is None:
            raise NotFoundError(resource_type="content_version", resource_id=version_id)
        return version

    async def get_version_by_number(self, item_id: str, version_number: int) -> ContentVersion:
        version = await self.repository.get_version_by_number(item_id, version_number)
        if version is None:
            raise NotFoundError(
                f"Version {version_number} not found",
                resource_type="content_version",
                resource_id=str(version_number),
            )
        return version

    async def get_latest_version(self, item_id: str) -> Optional[ContentVersion]:
        return await self.repository.get_latest_version(item_id)

    async def list_versions(self, item_id: str) -> List[ContentVersionWithCreator]:
        """All versions, newest first, with creator display names."""
        versions = await self.repository.list_versions(item_id)
        profiles = await self.repository.get_profiles(
            [v.created_by for v in versions if v.created_by]
        )

        result = []
        for version in versions:
            creator = None
            if version.created_by:
                profile = profiles.get(version.created_by)
                creator = VersionCreator(
                    id=version.created_by,
                    display_name=profile.display_name if profile else None,
                )
            result.append(ContentVersionWithCreator(**version.model_dump(), creator=creator))
        return result
