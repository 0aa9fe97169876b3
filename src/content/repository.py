"""
Datastore contract for versioned content and assets.

The services above this layer only talk to ``BaseContentRepository``. Two
implementations exist:

- ``InMemoryContentRepository`` for development and tests
- ``SupabaseContentRepository`` (``supabase_repository.py``) for production

``ContentRepository.get_repository()`` picks one based on configuration,
the same way the version service factory does.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from src.errors import ConflictError, NotFoundError
from src.types.assets import (
    Asset,
    AssetDeletionJob,
    AssetRef,
    DeletionStatus,
    UsageType,
)
from src.types.content import (
    AuthorProfile,
    ContentItem,
    ContentStatus,
    ContentType,
    Tag,
)
from src.types.version import ContentVersion

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseContentRepository(ABC):
    """Abstract datastore for items, versions, tags, profiles and assets."""

    # -------------------------------------------------------------------------
    # Content items
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_item(self, item: ContentItem) -> ContentItem:
        """
        Insert a content item.

        Raises:
            ConflictError: If the slug is already used by an item of the same type.
        """
        pass

    @abstractmethod
    async def get_item(self, item_id: str) -> Optional[ContentItem]:
        pass

    @abstractmethod
    async def get_item_by_slug(
        self,
        content_type: ContentType,
        slug: str,
    ) -> Optional[ContentItem]:
        pass

    @abstractmethod
    async def list_items(
        self,
        content_type: ContentType,
        published_only: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
        item_ids: Optional[List[str]] = None,
        owner_id: Optional[str] = None,
    ) -> Tuple[List[ContentItem], int]:
        """
        List items of a type.

        Posts are ordered newest first by publish date (unpublished last);
        projects by ``sort_order`` and then publish date.

        Returns:
            Tuple of (items in the requested window, total matching count).
        """
        pass

    @abstractmethod
    async def update_item(self, item_id: str, fields: Dict[str, Any]) -> ContentItem:
        """
        Update item columns and bump ``updated_at``.

        Raises:
            NotFoundError: If the item does not exist.
            ConflictError: If a slug change collides.
        """
        pass

    @abstractmethod
    async def delete_item(self, item_id: str) -> None:
        """Delete an item with its versions, asset refs and tag links."""
        pass

    # -------------------------------------------------------------------------
    # Versions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def insert_version(self, version: ContentVersion) -> ContentVersion:
        """
        Insert a version row.

        Raises:
            ConflictError: If ``(content_item_id, version_number)`` already exists.
        """
        pass

    @abstractmethod
    async def get_version(self, version_id: str) -> Optional[ContentVersion]:
        pass

    @abstractmethod
    async def get_versions(self, version_ids: List[str]) -> List[ContentVersion]:
        """Batch lookup; unknown ids are skipped."""
        pass

    @abstractmethod
    async def get_version_by_number(
        self,
        item_id: str,
        version_number: int,
    ) -> Optional[ContentVersion]:
        pass

    @abstractmethod
    async def get_latest_version(self, item_id: str) -> Optional[ContentVersion]:
        pass

    @abstractmethod
    async def list_versions(self, item_id: str) -> List[ContentVersion]:
        """All versions of an item, highest number first."""
        pass

    @abstractmethod
    async def update_version(self, version_id: str, fields: Dict[str, Any]) -> ContentVersion:
        pass

    @abstractmethod
    async def delete_version(self, version_id: str) -> None:
        """Delete a version and its asset refs."""
        pass

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_tags(self) -> List[Tag]:
        pass

    @abstractmethod
    async def get_tag(self, tag_id: str) -> Optional[Tag]:
        pass

    @abstractmethod
    async def get_tag_by_slug(self, slug: str) -> Optional[Tag]:
        pass

    @abstractmethod
    async def insert_tag(self, tag: Tag) -> Tag:
        pass

    @abstractmethod
    async def update_tag(self, tag_id: str, fields: Dict[str, Any]) -> Tag:
        pass

    @abstractmethod
    async def delete_tag(self, tag_id: str) -> None:
        pass

    @abstractmethod
    async def get_tags_for_items(self, item_ids: List[str]) -> Dict[str, List[Tag]]:
        """Batch lookup of tags keyed by item ID."""
        pass

    @abstractmethod
    async def add_item_tag(self, item_id: str, tag_id: str) -> None:
        pass

    @abstractmethod
    async def remove_item_tag(self, item_id: str, tag_id: str) -> None:
        pass

    @abstractmethod
    async def list_item_ids_for_tag(self, tag_id: str) -> List[str]:
        pass

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_profiles(self, user_ids: List[str]) -> Dict[str, AuthorProfile]:
        """Batch lookup of public profiles keyed by user ID."""
        pass

    # -------------------------------------------------------------------------
    # Assets and references
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_asset(self, asset: Asset) -> Asset:
        """Insert or update an asset keyed by ``object_key``; returns the stored row."""
        pass

    @abstractmethod
    async def get_asset(self, asset_id: str) -> Optional[Asset]:
        pass

    @abstractmethod
    async def get_assets_by_keys(self, object_keys: List[str]) -> List[Asset]:
        pass

    @abstractmethod
    async def list_assets_with_prefix(self, prefix: str) -> List[Asset]:
        pass

    @abstractmethod
    async def delete_asset(self, asset_id: str) -> None:
        pass

    @abstractmethod
    async def list_refs(
        self,
        version_id: str,
        usage_type: Optional[UsageType] = None,
    ) -> List[AssetRef]:
        pass

    @abstractmethod
    async def insert_refs(self, refs: List[AssetRef]) -> None:
        """Insert refs, ignoring ones that already exist."""
        pass

    @abstractmethod
    async def delete_refs(
        self,
        version_id: str,
        asset_ids: List[str],
        usage_type: Optional[UsageType] = None,
    ) -> None:
        pass

    @abstractmethod
    async def count_refs(self, asset_ids: List[str]) -> Dict[str, int]:
        """Reference counts across all versions, keyed by asset ID (missing = 0)."""
        pass

    # -------------------------------------------------------------------------
    # Deletion queue
    # -------------------------------------------------------------------------

    @abstractmethod
    async def enqueue_deletions(self, assets: List[Asset]) -> int:
        """
        Upsert pending deletion jobs keyed by asset ID, due now.

        Returns:
            Number of jobs written.
        """
        pass

    @abstractmethod
    async def list_due_deletions(self, now: datetime, limit: int) -> List[AssetDeletionJob]:
        """Pending or failed jobs due at ``now``, oldest ``next_attempt_at`` first."""
        pass

    @abstractmethod
    async def claim_deletion(self, job_id: str, now: datetime) -> Optional[AssetDeletionJob]:
        """
        Move a pending/failed job to processing.

        Returns:
            The claimed job, or None if another worker got there first.
        """
        pass

    @abstractmethod
    async def fail_deletion(
        self,
        job_id: str,
        attempt_count: int,
        error: str,
        next_attempt_at: datetime,
    ) -> None:
        pass

    @abstractmethod
    async def delete_deletion(self, job_id: str) -> None:
        pass


# =============================================================================
# In-memory implementation
# =============================================================================


class InMemoryContentRepository(BaseContentRepository):
    """In-memory repository for development and testing."""

    def __init__(self) -> None:
        self._items: Dict[str, ContentItem] = {}
        self._versions: Dict[str, ContentVersion] = {}
        self._tags: Dict[str, Tag] = {}
        self._item_tags: Dict[str, List[str]] = {}
        self._profiles: Dict[str, AuthorProfile] = {}
        self._assets: Dict[str, Asset] = {}
        self._refs: List[AssetRef] = []
        self._deletions: Dict[str, AssetDeletionJob] = {}
        logger.info("Initialized in-memory content repository")

    # Test/dev helpers

    def add_profile(self, profile: AuthorProfile) -> None:
        self._profiles[profile.id] = profile

    @property
    def deletion_jobs(self) -> List[AssetDeletionJob]:
        return [job.model_copy() for job in self._deletions.values()]

    # Items

    def _slug_taken(self, content_type: ContentType, slug: str, exclude_id: Optional[str] = None) -> bool:
        return any(
            i.type == content_type and i.slug == slug and i.id != exclude_id
            for i in self._items.values()
        )

    async def insert_item(self, item: ContentItem) -> ContentItem:
        if self._slug_taken(item.type, item.slug):
            raise ConflictError(f"Slug '{item.slug}' is already in use", resource_type="content_item")
        self._items[item.id] = item.model_copy(deep=True)
        return item.model_copy(deep=True)

    async def get_item(self, item_id: str) -> Optional[ContentItem]:
        item = self._items.get(item_id)
        return item.model_copy(deep=True) if item else None

    async def get_item_by_slug(self, content_type: ContentType, slug: str) -> Optional[ContentItem]:
        for item in self._items.values():
            if item.type == content_type and item.slug == slug:
                return item.model_copy(deep=True)
        return None

    @staticmethod
    def _sort_key(item: ContentItem) -> Tuple:
        published = item.published_at.timestamp() if item.published_at else float("-inf")
        return (item.published_at is None, -published, -item.created_at.timestamp())

    async def list_items(
        self,
        content_type: ContentType,
        published_only: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
        item_ids: Optional[List[str]] = None,
        owner_id: Optional[str] = None,
    ) -> Tuple[List[ContentItem], int]:
        items = [i for i in self._items.values() if i.type == content_type]
        if published_only:
            items = [i for i in items if i.status == ContentStatus.PUBLISHED]
        if item_ids is not None:
            wanted = set(item_ids)
            items = [i for i in items if i.id in wanted]
        if owner_id is not None:
            items = [i for i in items if i.owner_id == owner_id]

        items.sort(key=self._sort_key)
        if content_type == ContentType.PROJECT:
            items.sort(key=lambda i: i.sort_order)

        total = len(items)
        window = items[offset:offset + limit] if limit is not None else items[offset:]
        return [i.model_copy(deep=True) for i in window], total

    async def update_item(self, item_id: str, fields: Dict[str, Any]) -> ContentItem:
        item = self._items.get(item_id)
        if item is None:
            raise NotFoundError(resource_type="content_item", resource_id=item_id)
        slug = fields.get("slug")
        if slug is not None and self._slug_taken(item.type, slug, exclude_id=item_id):
            raise ConflictError(f"Slug '{slug}' is already in use", resource_type="content_item")

        updated = item.model_copy(update={**fields, "updated_at": fields.get("updated_at", utcnow())})
        self._items[item_id] = updated
        return updated.model_copy(deep=True)

    async def delete_item(self, item_id: str) -> None:
        version_ids = {v.id for v in self._versions.values() if v.content_item_id == item_id}
        self._refs = [r for r in self._refs if r.content_version_id not in version_ids]
        for version_id in version_ids:
            del self._versions[version_id]
        self._item_tags.pop(item_id, None)
        self._items.pop(item_id, None)

    # Versions

    async def insert_version(self, version: ContentVersion) -> ContentVersion:
        for existing in self._versions.values():
            if (
                existing.content_item_id == version.content_item_id
                and existing.version_number == version.version_number
            ):
                raise ConflictError(
                    f"Version {version.version_number} already exists",
                    resource_type="content_version",
                )
        self._versions[version.id] = version.model_copy(deep=True)
        return version.model_copy(deep=True)

    async def get_version(self, version_id: str) -> Optional[ContentVersion]:
        version = self._versions.get(version_id)
        return version.model_copy(deep=True) if version else None

    async def get_versions(self, version_ids: List[str]) -> List[ContentVersion]:
        return [self._versions[v].model_copy(deep=True) for v in version_ids if v in self._versions]

    async def get_version_by_number(self, item_id: str, version_number: int) -> Optional[ContentVersion]:
        for version in self._versions.values():
            if version.content_item_id == item_id and version.version_number == version_number:
                return version.model_copy(deep=True)
        return None

    async def get_latest_version(self, item_id: str) -> Optional[ContentVersion]:
        versions = await self.list_versions(item_id)
        return versions[0] if versions else None

    async def list_versions(self, item_id: str) -> List[ContentVersion]:
        versions = [v for v in self._versions.values() if v.content_item_id == item_id]
        versions.sort(key=lambda v: v.version_number, reverse=True)
        return [v.model_copy(deep=True) for v in versions]

    async def update_version(self, version_id: str, fields: Dict[str, Any]) -> ContentVersion:
        version = self._versions.get(version_id)
        if version is None:
            raise NotFoundError(resource_type="content_version", resource_id=version_id)
        updated = version.model_copy(update=fields)
        self._versions[version_id] = updated
        return updated.model_copy(deep=True)

    async def delete_version(self, version_id: str) -> None:
        self._refs = [r for r in self._refs if r.content_version_id != version_id]
        self._versions.pop(version_id, None)

    # Tags

    async def list_tags(self) -> List[Tag]:
        return sorted((t.model_copy() for t in self._tags.values()), key=lambda t: t.name.lower())

    async def get_tag(self, tag_id: str) -> Optional[Tag]:
        tag = self._tags.get(tag_id)
        return tag.model_copy() if tag else None

    async def get_tag_by_slug(self, slug: str) -> Optional[Tag]:
        for tag in self._tags.values():
            if tag.slug == slug:
                return tag.model_copy()
        return None

    async def insert_tag(self, tag: Tag) -> Tag:
        if any(t.slug == tag.slug for t in self._tags.values()):
            raise ConflictError(f"Tag '{tag.name}' already exists", resource_type="tag")
        self._tags[tag.id] = tag.model_copy()
        return tag.model_copy()

    async def update_tag(self, tag_id: str, fields: Dict[str, Any]) -> Tag:
        tag = self._tags.get(tag_id)
        if tag is None:
            raise NotFoundError(resource_type="tag", resource_id=tag_id)
        slug = fields.get("slug")
        if slug and any(t.slug == slug and t.id != tag_id for t in self._tags.values()):
            raise ConflictError(f"Tag slug '{slug}' already exists", resource_type="tag")
        updated = tag.model_copy(update=fields)
        self._tags[tag_id] = updated
        return updated.model_copy()

    async def delete_tag(self, tag_id: str) -> None:
        self._tags.pop(tag_id, None)
        for tag_ids in self._item_tags.values():
            if tag_id in tag_ids:
                tag_ids.remove(tag_id)

    async def get_tags_for_items(self, item_ids: List[str]) -> Dict[str, List[Tag]]:
        result: Dict[str, List[Tag]] = {}
        for item_id in item_ids:
            tags = [self._tags[t].model_copy() for t in self._item_tags.get(item_id, []) if t in self._tags]
            result[item_id] = tags
        return result

    async def add_item_tag(self, item_id: str, tag_id: str) -> None:
        tag_ids = self._item_tags.setdefault(item_id, [])
        if tag_id not in tag_ids:
            tag_ids.append(tag_id)

    async def remove_item_tag(self, item_id: str, tag_id: str) -> None:
        tag_ids = self._item_tags.get(item_id, [])
        if tag_id in tag_ids:
            tag_ids.remove(tag_id)

    async def list_item_ids_for_tag(self, tag_id: str) -> List[str]:
        return [item_id for item_id, tag_ids in self._item_tags.items() if tag_id in tag_ids]

    # Profiles

    async def get_profiles(self, user_ids: List[str]) -> Dict[str, AuthorProfile]:
        return {uid: self._profiles[uid].model_copy() for uid in set(user_ids) if uid in self._profiles}

    # Assets

    async def upsert_asset(self, asset: Asset) -> Asset:
        for existing_id, existing in self._assets.items():
            if existing.object_key == asset.object_key:
                merged = existing.model_copy(update={
                    "public_url": asset.public_url,
                    "owner_id": asset.owner_id or existing.owner_id,
                    "mime_type": asset.mime_type or existing.mime_type,
                    "size_bytes": asset.size_bytes if asset.size_bytes is not None else existing.size_bytes,
                })
                self._assets[existing_id] = merged
                return merged.model_copy()
        self._assets[asset.id] = asset.model_copy()
        return asset.model_copy()

    async def get_asset(self, asset_id: str) -> Optional[Asset]:
        asset = self._assets.get(asset_id)
        return asset.model_copy() if asset else None

    async def get_assets_by_keys(self, object_keys: List[str]) -> List[Asset]:
        keys = set(object_keys)
        return [a.model_copy() for a in self._assets.values() if a.object_key in keys]

    async def list_assets_with_prefix(self, prefix: str) -> List[Asset]:
        return [a.model_copy() for a in self._assets.values() if a.object_key.startswith(prefix)]

    async def delete_asset(self, asset_id: str) -> None:
        self._assets.pop(asset_id, None)
        self._refs = [r for r in self._refs if r.asset_id != asset_id]

    async def list_refs(self, version_id: str, usage_type: Optional[UsageType] = None) -> List[AssetRef]:
        return [
            r.model_copy() for r in self._refs
            if r.content_version_id == version_id and (usage_type is None or r.usage_type == usage_type)
        ]

    async def insert_refs(self, refs: List[AssetRef]) -> None:
        for ref in refs:
            if ref not in self._refs:
                self._refs.append(ref.model_copy())

    async def delete_refs(
        self,
        version_id: str,
        asset_ids: List[str],
        usage_type: Optional[UsageType] = None,
    ) -> None:
        targets = set(asset_ids)
        self._refs = [
            r for r in self._refs
            if not (
                r.content_version_id == version_id
                and r.asset_id in targets
                and (usage_type is None or r.usage_type == usage_type)
            )
        ]

    async def count_refs(self, asset_ids: List[str]) -> Dict[str, int]:
        counts = {asset_id: 0 for asset_id in asset_ids}
        for ref in self._refs:
            if ref.asset_id in counts:
                counts[ref.asset_id] += 1
        return counts

    # Deletion queue

    async def enqueue_deletions(self, assets: List[Asset]) -> int:
        now = utcnow()
        for asset in assets:
            existing = next((j for j in self._deletions.values() if j.asset_id == asset.id), None)
            if existing:
                self._deletions[existing.id] = existing.model_copy(update={
                    "object_key": asset.object_key,
                    "status": DeletionStatus.PENDING,
                    "next_attempt_at": now,
                    "last_error": None,
                    "locked_at": None,
                    "updated_at": now,
                })
            else:
                job = AssetDeletionJob(
                    id=f"job_{asset.id}",
                    asset_id=asset.id,
                    object_key=asset.object_key,
                    next_attempt_at=now,
                    created_at=now,
                    updated_at=now,
                )
                self._deletions[job.id] = job
        return len(assets)

    async def list_due_deletions(self, now: datetime, limit: int) -> List[AssetDeletionJob]:
        due = [
            j for j in self._deletions.values()
            if j.status in (DeletionStatus.PENDING, DeletionStatus.FAILED) and j.next_attempt_at <= now
        ]
        due.sort(key=lambda j: j.next_attempt_at)
        return [j.model_copy() for j in due[:limit]]

    async def claim_deletion(self, job_id: str, now: datetime) -> Optional[AssetDeletionJob]:
        job = self._deletions.get(job_id)
        if job is None or job.status not in (DeletionStatus.PENDING, DeletionStatus.FAILED):
            return None
        claimed = job.model_copy(update={
            "status": DeletionStatus.PROCESSING,
            "locked_at": now,
            "updated_at": now,
        })
        self._deletions[job_id] = claimed
        return claimed.model_copy()

    async def fail_deletion(
        self,
        job_id: str,
        attempt_count: int,
        error: str,
        next_attempt_at: datetime,
    ) -> None:
        job = self._deletions.get(job_id)
        if job is None:
            return
        self._deletions[job_id] = job.model_copy(update={
            "status": DeletionStatus.FAILED,
            "attempt_count": attempt_count,
            "last_error": error,
            "next_attempt_at": next_attempt_at,
            "locked_at": None,
            "updated_at": utcnow(),
        })

    async def delete_deletion(self, job_id: str) -> None:
        self._deletions.pop(job_id, None)


# =============================================================================
# Factory
# =============================================================================


class ContentRepository:
    """
    Factory class for the content repository.

    Automatically selects between Supabase and in-memory storage based on
    configuration.
    """

    _instance: Optional[BaseContentRepository] = None

    @classmethod
    def get_repository(cls) -> BaseContentRepository:
        """
        Get or create the repository instance.

        Uses Supabase if SUPABASE_URL and a key are configured, otherwise
        falls back to in-memory storage.
        """
        if cls._instance is not None:
            return cls._instance

        from src.config import get_settings

        database = get_settings().database
        if database.is_configured:
            from .supabase_repository import SupabaseContentRepository

            key = database.supabase_service_role_key or database.supabase_key
            cls._instance = SupabaseContentRepository(
                database.supabase_url,
                key.get_secret_value(),
            )
            logger.info("Using Supabase storage for content")
        else:
            logger.info("Supabase not configured. Using in-memory storage for content.")
            cls._instance = InMemoryContentRepository()

        return cls._instance

    @classmethod
    def set_repository(cls, repository: BaseContentRepository) -> None:
        cls._instance = repository

    @classmethod
    def reset(cls) -> None:
        """Reset the repository instance. Useful for testing."""
        cls._instance = None


def get_content_repository() -> BaseContentRepository:
    """Get the content repository instance."""
    return ContentRepository.get_repository()
