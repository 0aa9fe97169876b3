"""
Supabase-backed content repository for production.

Table layout (see ``db/schema.sql``):
    content_items, content_versions, content_tags, content_item_tags,
    secure_profiles, assets, content_version_assets, asset_deletion_queue
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from src.errors import ConflictError, DatastoreError, NotFoundError
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

from .repository import BaseContentRepository, utcnow

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

ITEM_COLUMNS = (
    "id, type, title, slug, summary, cover_image, owner_id, status, "
    "current_version_id, published_version_id, published_at, sort_order, "
    "created_at, updated_at"
)
VERSION_COLUMNS = (
    "id, content_item_id, version_number, title, summary, body_text, "
    "snapshot_status, created_by, change_description, created_at"
)
JOB_COLUMNS = (
    "id, asset_id, object_key, status, attempt_count, next_attempt_at, "
    "last_error, locked_at, created_at, updated_at"
)


def _to_db(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Serialize enums and datetimes for PostgREST."""
    out: Dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        out[key] = value
    return out


def _version_from_row(row: Dict[str, Any]) -> ContentVersion:
    data = dict(row)
    data["body_json"] = data.pop("body_text", None) or "[]"
    data["title"] = data.get("title") or ""
    return ContentVersion.model_validate(data)


def _version_to_row(fields: Dict[str, Any]) -> Dict[str, Any]:
    data = _to_db(fields)
    if "body_json" in data:
        data["body_text"] = data.pop("body_json")
        data["body_format"] = "blocknote"
    return data


class SupabaseContentRepository(BaseContentRepository):
    """Supabase-backed repository for production."""

    def __init__(self, supabase_url: str, supabase_key: str) -> None:
        self._supabase_url = supabase_url
        self._supabase_key = supabase_key
        self._client = None
        logger.info("Initialized Supabase content repository")

    def _get_client(self):
        """Get or create Supabase client."""
        if self._client is not None:
            return self._client

        from supabase import create_client

        try:
            self._client = create_client(self._supabase_url, self._supabase_key)
            return self._client
        except Exception as e:
            logger.error(f"Failed to create Supabase client: {e}")
            raise DatastoreError("Database connection failed") from e

    def _raise(self, action: str, e: Exception, resource_type: Optional[str] = None):
        if getattr(e, "code", None) == UNIQUE_VIOLATION:
            raise ConflictError(f"Conflict while trying to {action}", resource_type=resource_type) from e
        logger.error(f"Error trying to {action}: {e}")
        raise DatastoreError(f"Failed to {action}") from e

    # -------------------------------------------------------------------------
    # Content items
    # -------------------------------------------------------------------------

    async def insert_item(self, item: ContentItem) -> ContentItem:
        try:
            result = (
                self._get_client()
                .table("content_items")
                .insert(item.model_dump(mode="json"))
                .execute()
            )
            return ContentItem.model_validate(result.data[0])
        except Exception as e:
            self._raise("create content item", e, "content_item")

    async def get_item(self, item_id: str) -> Optional[ContentItem]:
        try:
            result = (
                self._get_client()
                .table("content_items")
                .select(ITEM_COLUMNS)
                .eq("id", item_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            self._raise("load content item", e)
        return ContentItem.model_validate(result.data[0]) if result.data else None

    async def get_item_by_slug(self, content_type: ContentType, slug: str) -> Optional[ContentItem]:
        try:
            result = (
                self._get_client()
                .table("content_items")
                .select(ITEM_COLUMNS)
                .eq("type", content_type.value)
                .eq("slug", slug)
                .limit(1)
                .execute()
            )
        except Exception as e:
            self._raise("load content item", e)
        return ContentItem.model_validate(result.data[0]) if result.data else None

    async def list_items(
        self,
        content_type: ContentType,
        published_only: bool = True,
        offset: int = 0,
        limit: Optional[int] = None,
        item_ids: Optional[List[str]] = None,
        owner_id: Optional[str] = None,
    ) -> Tuple[List[ContentItem], int]:
        if item_ids is not None and not item_ids:
            return [], 0
        try:
            query = (
                self._get_client()
                .table("content_items")
                .select(ITEM_COLUMNS, count="exact")
                .eq("type", content_type.value)
            )
            if published_only:
                query = query.eq("status", ContentStatus.PUBLISHED.value)
            if item_ids is not None:
                query = query.in_("id", item_ids)
            if owner_id is not None:
                query = query.eq("owner_id", owner_id)
            if content_type == ContentType.PROJECT:
                query = query.order("sort_order")
            query = (
                query.order("published_at", desc=True, nullsfirst=False)
                .order("created_at", desc=True)
            )
            if limit is not None:
                query = query.range(offset, offset + limit - 1)
            elif offset:
                query = query.range(offset, offset + 10_000)
            result = query.execute()
        except Exception as e:
            self._raise("list content items", e)

        items = [ContentItem.model_validate(row) for row in result.data or []]
        return items, result.count if result.count is not None else len(items)

    async def update_item(self, item_id: str, fields: Dict[str, Any]) -> ContentItem:
        payload = _to_db({**fields, "updated_at": fields.get("updated_at", utcnow())})
        try:
            result = (
                self._get_client()
                .table("content_items")
                .update(payload)
                .eq("id", item_id)
                .execute()
            )
        except Exception as e:
            self._raise("update content item", e, "content_item")
        if not result.data:
            raise NotFoundError(resource_type="content_item", resource_id=item_id)
        return ContentItem.model_validate(result.data[0])

    async def delete_item(self, item_id: str) -> None:
        # Versions, refs and tag links cascade in the schema
        try:
            self._get_client().table("content_items").delete().eq("id", item_id).execute()
        except Exception as e:
            self._raise("delete content item", e)

    # -------------------------------------------------------------------------
    # Versions
    # -------------------------------------------------------------------------

    async def insert_version(self, version: ContentVersion) -> ContentVersion:
        try:
            result = (
                self._get_client()
                .table("content_versions")
                .insert(_version_to_row(version.model_dump()))
                .execute()
            )
            return _version_from_row(result.data[0])
        except Exception as e:
            self._raise("create version", e, "content_version")

    async def get_version(self, version_id: str) -> Optional[ContentVersion]:
        try:
            result = (
                self._get_client()
                .table("content_versions")
                .select(VERSION_COLUMNS)
                .eq("id", version_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            self._raise("load version", e)
        return _version_from_row(result.data[0]) if result.data else None

    async def get_versions(self, version_ids: List[str]) -> List[ContentVersion]:
        if not version_ids:
            return []
        try:
            result = (
                self._get_client()
                .table("content_versions")
                .select(VERSION_COLUMNS)
                .in_("id", version_ids)
                .execute()
            )
        except Exception as e:
            self._raise("load versions", e)
        return [_version_from_row(row) for row in result.data or []]

    async def get_version_by_number(self, item_id: str, version_number: int) -> Optional[ContentVersion]:
        try:
            result = (
                self._get_client()
                .table("content_versions")
                .select(VERSION_COLUMNS)
                .eq("content_item_id", item_id)
                .eq("version_number", version_number)
                .limit(1)
                .execute()
            )
        except Exception as e:
            self._raise("load version", e)
        return _version_from_row(result.data[0]) if result.data else None

    async def get_latest_version(self, item_id: str) -> Optional[ContentVersion]:
        try:
            result = (
                self._get_client()
                .table("content_versions")
                .select(VERSION_COLUMNS)
                .eq("content_item_id", item_id)
                .order("version_number", desc=True)
                .limit(1)
                .execute()
            )
        except Exception as e:
            self._raise("load latest version", e)
        return _version_from_row(result.data[0]) if result.data else None

    async def list_versions(self, item_id: str) -> List[ContentVersion]:
        try:
            result = (
                self._get_client()
                .table("content_versions")
                .select(VERSION_COLUMNS)
                .eq("content_item_id", item_id)
                .order("version_number", desc=True)
                .execute()
            )
        except Exception as e:
            self._raise("list versions", e)
        return [_version_from_row(row) for row in result.data or []]

    async def update_version(self, version_id: str, fields: Dict[str, Any]) -> ContentVersion:
        try:
            result = (
                self._get_client()
                .table("content_versions")
                .update(_version_to_row(fields))
                .eq("id", version_id)
                .execute()
            )
        except Exception as e:
            self._raise("update version", e)
        if not result.data:
            raise NotFoundError(resource_type="content_version", resource_id=version_id)
        return _version_from_row(result.data[0])

    async def delete_version(self, version_id: str) -> None:
        try:
            self._get_client().table("content_versions").delete().eq("id", version_id).execute()
        except Exception as e:
            self._raise("delete version", e)

    # -------------------------------------------------------------------------
    # Tags
    # -------------------------------------------------------------------------

    async def list_tags(self) -> List[Tag]:
        try:
            result = self._get_client().table("content_tags").select("id, name, slug").order("name").execute()
        except Exception as e:
            self._raise("list tags", e)
        return [Tag.model_validate(row) for row in result.data or []]

    async def get_tag(self, tag_id: str) -> Optional[Tag]:
        try:
            result = (
                self._get_client()
                .table("content_tags")
                .select("id, name, slug")
                .eq("id", tag_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            self._raise("load tag", e)
        return Tag.model_validate(result.data[0]) if result.data else None

    async def get_tag_by_slug(self, slug: str) -> Optional[Tag]:
        try:
            result = (
                self._get_client()
                .table("content_tags")
                .select("id, name, slug")
                .eq("slug", slug)
                .limit(1)
                .execute()
            )
        except Exception as e:
            self._raise("load tag", e)
        return Tag.model_validate(result.data[0]) if result.data else None

    async def insert_tag(self, tag: Tag) -> Tag:
        try:
            result = self._get_client().table("content_tags").insert(tag.model_dump()).execute()
            return Tag.model_validate(result.data[0])
        except Exception as e:
            self._raise("create tag", e, "tag")

    async def update_tag(self, tag_id: str, fields: Dict[str, Any]) -> Tag:
        try:
            result = self._get_client().table("content_tags").update(fields).eq("id", tag_id).execute()
        except Exception as e:
            self._raise("update tag", e, "tag")
        if not result.data:
            raise NotFoundError(resource_type="tag", resource_id=tag_id)
        return Tag.model_validate(result.data[0])

    async def delete_tag(self, tag_id: str) -> None:
        try:
            self._get_client().table("content_tags").delete().eq("id", tag_id).execute()
        except Exception as e:
            self._raise("delete tag", e)

    async def get_tags_for_items(self, item_ids: List[str]) -> Dict[str, List[Tag]]:
        result_map: Dict[str, List[Tag]] = {item_id: [] for item_id in item_ids}
        if not item_ids:
            return result_map
        try:
            links = (
                self._get_client()
                .table("content_item_tags")
                .select("content_item_id, tag_id")
                .in_("content_item_id", item_ids)
                .execute()
            )
            tag_ids = list({row["tag_id"] for row in links.data or []})
            if not tag_ids:
                return result_map
            tags = (
                self._get_client()
                .table("content_tags")
                .select("id, name, slug")
                .in_("id", tag_ids)
                .execute()
            )
        except Exception as e:
            self._raise("load item tags", e)

        tag_map = {row["id"]: Tag.model_validate(row) for row in tags.data or []}
        for row in links.data or []:
            tag = tag_map.get(row["tag_id"])
            if tag:
                result_map.setdefault(row["content_item_id"], []).append(tag)
        return result_map

    async def add_item_tag(self, item_id: str, tag_id: str) -> None:
        try:
            (
                self._get_client()
                .table("content_item_tags")
                .upsert(
                    [{"content_item_id": item_id, "tag_id": tag_id}],
                    on_conflict="content_item_id,tag_id",
                )
                .execute()
            )
        except Exception as e:
            self._raise("tag content item", e)

    async def remove_item_tag(self, item_id: str, tag_id: str) -> None:
        try:
            (
                self._get_client()
                .table("content_item_tags")
                .delete()
                .eq("content_item_id", item_id)
                .eq("tag_id", tag_id)
                .execute()
            )
        except Exception as e:
            self._raise("untag content item", e)

    async def list_item_ids_for_tag(self, tag_id: str) -> List[str]:
        try:
            result = (
                self._get_client()
                .table("content_item_tags")
                .select("content_item_id")
                .eq("tag_id", tag_id)
                .execute()
            )
        except Exception as e:
            self._raise("list tagged items", e)
        return [row["content_item_id"] for row in result.data or []]

    # -------------------------------------------------------------------------
    # Profiles
    # -------------------------------------------------------------------------

    async def get_profiles(self, user_ids: List[str]) -> Dict[str, AuthorProfile]:
        ids = list({uid for uid in user_ids if uid})
        if not ids:
            return {}
        try:
            result = (
                self._get_client()
                .table("secure_profiles")
                .select("id, full_name, username, avatar_url")
                .in_("id", ids)
                .execute()
            )
        except Exception as e:
            # Author hydration is cosmetic; listings still render without it
            logger.warning(f"Failed to load profiles: {e}")
            return {}
        return {row["id"]: AuthorProfile.model_validate(row) for row in result.data or []}

    # -------------------------------------------------------------------------
    # Assets and references
    # -------------------------------------------------------------------------

    async def upsert_asset(self, asset: Asset) -> Asset:
        payload = asset.model_dump(mode="json", exclude={"id", "created_at"})
        try:
            result = (
                self._get_client()
                .table("assets")
                .upsert([payload], on_conflict="object_key")
                .execute()
            )
        except Exception as e:
            self._raise("record asset", e)
        return Asset.model_validate(result.data[0])

    async def get_asset(self, asset_id: str) -> Optional[Asset]:
        try:
            result = self._get_client().table("assets").select("*").eq("id", asset_id).limit(1).execute()
        except Exception as e:
            self._raise("load asset", e)
        return Asset.model_validate(result.data[0]) if result.data else None

    async def get_assets_by_keys(self, object_keys: List[str]) -> List[Asset]:
        if not object_keys:
            return []
        try:
            result = self._get_client().table("assets").select("*").in_("object_key", object_keys).execute()
        except Exception as e:
            self._raise("load assets", e)
        return [Asset.model_validate(row) for row in result.data or []]

    async def list_assets_with_prefix(self, prefix: str) -> List[Asset]:
        try:
            result = self._get_client().table("assets").select("*").like("object_key", f"{prefix}%").execute()
        except Exception as e:
            self._raise("list assets", e)
        return [Asset.model_validate(row) for row in result.data or []]

    async def delete_asset(self, asset_id: str) -> None:
        try:
            self._get_client().table("assets").delete().eq("id", asset_id).execute()
        except Exception as e:
            self._raise("delete asset", e)

    async def list_refs(self, version_id: str, usage_type: Optional[UsageType] = None) -> List[AssetRef]:
        try:
            query = (
                self._get_client()
                .table("content_version_assets")
                .select("content_version_id, asset_id, usage_type")
                .eq("content_version_id", version_id)
            )
            if usage_type is not None:
                query = query.eq("usage_type", usage_type.value)
            result = query.execute()
        except Exception as e:
            self._raise("list asset references", e)
        return [AssetRef.model_validate(row) for row in result.data or []]

    async def insert_refs(self, refs: List[AssetRef]) -> None:
        if not refs:
            return
        try:
            (
                self._get_client()
                .table("content_version_assets")
                .upsert(
                    [ref.model_dump(mode="json") for ref in refs],
                    on_conflict="content_version_id,asset_id,usage_type",
                    ignore_duplicates=True,
                )
                .execute()
            )
        except Exception as e:
            self._raise("link assets to version", e)

    async def delete_refs(
        self,
        version_id: str,
        asset_ids: List[str],
        usage_type: Optional[UsageType] = None,
    ) -> None:
        if not asset_ids:
            return
        try:
            query = (
                self._get_client()
                .table("content_version_assets")
                .delete()
                .eq("content_version_id", version_id)
                .in_("asset_id", asset_ids)
            )
            if usage_type is not None:
                query = query.eq("usage_type", usage_type.value)
            query.execute()
        except Exception as e:
            self._raise("unlink assets from version", e)

    async def count_refs(self, asset_ids: List[str]) -> Dict[str, int]:
        counts = {asset_id: 0 for asset_id in asset_ids}
        if not asset_ids:
            return counts
        try:
            result = (
                self._get_client()
                .table("content_version_assets")
                .select("asset_id")
                .in_("asset_id", asset_ids)
                .execute()
            )
        except Exception as e:
            self._raise("count asset references", e)
        for row in result.data or []:
            counts[row["asset_id"]] = counts.get(row["asset_id"], 0) + 1
        return counts

    # -------------------------------------------------------------------------
    # Deletion queue
    # -------------------------------------------------------------------------

    async def enqueue_deletions(self, assets: List[Asset]) -> int:
        if not assets:
            return 0
        now = utcnow().isoformat()
        rows = [
            {
                "asset_id": asset.id,
                "object_key": asset.object_key,
                "status": DeletionStatus.PENDING.value,
                "next_attempt_at": now,
                "last_error": None,
                "locked_at": None,
                "updated_at": now,
            }
            for asset in assets
        ]
        try:
            self._get_client().table("asset_deletion_queue").upsert(rows, on_conflict="asset_id").execute()
        except Exception as e:
            self._raise("enqueue asset deletions", e)
        return len(rows)

    async def list_due_deletions(self, now: datetime, limit: int) -> List[AssetDeletionJob]:
        try:
            result = (
                self._get_client()
                .table("asset_deletion_queue")
                .select(JOB_COLUMNS)
                .in_("status", [DeletionStatus.PENDING.value, DeletionStatus.FAILED.value])
                .lte("next_attempt_at", now.isoformat())
                .order("next_attempt_at")
                .limit(limit)
                .execute()
            )
        except Exception as e:
            self._raise("fetch asset deletion jobs", e)
        return [AssetDeletionJob.model_validate(row) for row in result.data or []]

    async def claim_deletion(self, job_id: str, now: datetime) -> Optional[AssetDeletionJob]:
        try:
            result = (
                self._get_client()
                .table("asset_deletion_queue")
                .update({
                    "status": DeletionStatus.PROCESSING.value,
                    "locked_at": now.isoformat(),
                    "updated_at": now.isoformat(),
                })
                .eq("id", job_id)
                .in_("status", [DeletionStatus.PENDING.value, DeletionStatus.FAILED.value])
                .execute()
            )
        except Exception as e:
            logger.warning(f"Failed to claim deletion job {job_id}: {e}")
            return None
        return AssetDeletionJob.model_validate(result.data[0]) if result.data else None

    async def fail_deletion(
        self,
        job_id: str,
        attempt_count: int,
        error: str,
        next_attempt_at: datetime,
    ) -> None:
        try:
            (
                self._get_client()
                .table("asset_deletion_queue")
                .update({
                    "status": DeletionStatus.FAILED.value,
                    "attempt_count": attempt_count,
                    "last_error": error[:1000],
                    "next_attempt_at": next_attempt_at.isoformat(),
                    "locked_at": None,
                    "updated_at": utcnow().isoformat(),
                })
                .eq("id", job_id)
                .execute()
            )
        except Exception as e:
            self._raise("record deletion failure", e)

    async def delete_deletion(self, job_id: str) -> None:
        try:
            self._get_client().table("asset_deletion_queue").delete().eq("id", job_id).execute()
        except Exception as e:
            self._raise("remove deletion job", e)
