"""
Content Service.

The publish/draft state machine shared by posts and projects:
- Item creation with slug derivation
- Content autosave and similarity-gated version snapshots
- Publish, unpublish and restore
- Reader visibility (only published snapshots for non-owners)
- Version diffs and draft-change detection
- Debounced background saves through ``SaveScheduler``

Each item carries two pointers: ``current_version_id`` is the editable draft,
``published_version_id`` is the public snapshot. Saving never moves the
published pointer; only ``publish``/``unpublish`` do.
"""

import logging
import time
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar

from src.assets.tracker import AssetReferenceTracker, item_asset_prefix
from src.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    NotPublishedError,
    UnauthorizedError,
)
from src.types.assets import Asset, UsageType
from src.types.content import (
    ContentItem,
    ContentListResponse,
    ContentStatus,
    ContentSummary,
    ContentType,
    ContentView,
)
from src.types.version import (
    ContentVersion,
    DraftChangesResponse,
    DraftInput,
    PublishResult,
    SaveAction,
    SaveStatus,
    SmartSaveResult,
    SnapshotStatus,
    VersionDiffResponse,
    VersionListResponse,
    VersionSnapshotUpdate,
)

from .diff import diff_documents
from .extraction import extract_text
from .repository import BaseContentRepository, get_content_repository, utcnow
from .scheduler import SaveScheduler
from .similarity import SIMILARITY_THRESHOLD, is_minor_edit, text_similarity
from .tags import TagService, slugify
from .version_store import VersionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value <= 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36[rem])
    return "".join(reversed(digits))


def draft_slug() -> str:
    """Placeholder slug for items created without a title."""
    return f"untitled-{to_base36(int(time.time() * 1000))}"


class ContentService:
    """Versioned content workflow for one repository."""

    def __init__(
        self,
        repository: BaseContentRepository,
        tracker: Optional[AssetReferenceTracker] = None,
        scheduler: Optional[SaveScheduler] = None,
        similarity_threshold: float = SIMILARITY_THRESHOLD,
        autosave_delay: float = 1.0,
        snapshot_delay: float = 1.5,
    ) -> None:
        self.repository = repository
        self.tracker = tracker or AssetReferenceTracker(repository)
        self.versions = VersionStore(repository, self.tracker)
        self.tags = TagService(repository)
        self.scheduler = scheduler or SaveScheduler()
        self.similarity_threshold = similarity_threshold
        self.autosave_delay = autosave_delay
        self.snapshot_delay = snapshot_delay
        self._save_status: Dict[str, SaveStatus] = {}
        self._status_before_pending: Dict[str, SaveStatus] = {}

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    async def get_item(self, item_id: str) -> ContentItem:
        item = await self.repository.get_item(item_id)
        if item is None:
            raise NotFoundError(resource_type="content_item", resource_id=item_id)
        return item

    async def get_owned_item(self, item_id: str, user_id: str) -> ContentItem:
        """
        Load an item the user may modify.

        Raises:
            NotFoundError: If the item does not exist.
            UnauthorizedError: If ``user_id`` is not the owner.
        """
        item = await self.get_item(item_id)
        if not user_id or item.owner_id != user_id:
            logger.warning(f"User {user_id} denied access to item {item_id}")
            raise UnauthorizedError()
        return item

    async def _current_version(self, item: ContentItem) -> Optional[ContentVersion]:
        if not item.current_version_id:
            return None
        return await self.repository.get_version(item.current_version_id)

    async def _writable_draft(self, item: ContentItem, user_id: str) -> ContentVersion:
        """The draft version, forked off the published snapshot when they are the same."""
        current = await self._current_version(item)
        if current is None or current.id == item.published_version_id:
            current = await self.autosave(item.id, user_id, current.body_json if current else "[]")
        return current

    async def _ensure_slug_free(
        self,
        content_type: ContentType,
        slug: str,
        exclude_id: Optional[str] = None,
    ) -> None:
        existing = await self.repository.get_item_by_slug(content_type, slug)
        if existing and existing.id != exclude_id:
            raise ConflictError(
                f"A {content_type.value} with slug '{slug}' already exists",
                resource_type="content_item",
            )

    # -------------------------------------------------------------------------
    # Creation and item-level edits
    # -------------------------------------------------------------------------

    async def create_item(
        self,
        content_type: ContentType,
        owner_id: str,
        title: str = "",
        slug: Optional[str] = None,
        summary: Optional[str] = None,
        body_json: Optional[str] = None,
        cover_image: Optional[str] = None,
        tag_ids: Optional[List[str]] = None,
        publish: bool = False,
    ) -> ContentItem:
        """
        Create a post or project.

        With a body, version 1 ("Initial version") is created and becomes the
        draft. Without one the item is an empty shell until its first save.

        Raises:
            ConflictError: If the slug is already used by the same type.
        """
        title = (title or "").strip()
        item_slug = slugify(slug or "") or slugify(title) or draft_slug()
        await self._ensure_slug_free(content_type, item_slug)

        sort_order = 0
        if content_type == ContentType.PROJECT:
            _, sort_order = await self.repository.list_items(
                ContentType.PROJECT, published_only=False, limit=1
            )

        now = utcnow()
        item = await self.repository.insert_item(ContentItem(
            id=str(uuid.uuid4()),
            type=content_type,
            title=title,
            slug=item_slug,
            summary=summary,
            cover_image=cover_image,
            owner_id=owner_id,
            status=ContentStatus.DRAFT,
            sort_order=sort_order,
            created_at=now,
            updated_at=now,
        ))
        logger.info(f"Created {content_type.value} {item.id} ({item.slug})")

        for tag_id in tag_ids or []:
            await self.tags.add_to_item(item.id, tag_id)

        if body_json is not None:
            await self.versions.create_version(
                item.id,
                title=title,
                body_json=body_json,
                summary=summary,
                created_by=owner_id,
                change_description="Initial version",
                make_current=True,
            )

        if publish:
            await self.publish(item.id, owner_id)

        return await self.get_item(item.id)

    async def rename_item(
        self,
        item_id: str,
        user_id: str,
        title: Optional[str] = None,
        slug: Optional[str] = None,
    ) -> ContentItem:
        """
        Change the title and/or slug.

        The draft version's title follows the item title unless the draft is
        the published snapshot.
        """
        item = await self.get_owned_item(item_id, user_id)
        fields = {}
        if title is not None:
            fields["title"] = title.strip()
        if slug is not None:
            new_slug = slugify(slug)
            if not new_slug:
                raise InvalidInputError("Slug must contain letters or numbers")
            await self._ensure_slug_free(item.type, new_slug, exclude_id=item.id)
            fields["slug"] = new_slug
        if not fields:
            return item

        item = await self.repository.update_item(item.id, fields)
        if (
            "title" in fields
            and item.current_version_id
            and item.current_version_id != item.published_version_id
        ):
            await self.versions.update_version_snapshot(
                item.current_version_id, VersionSnapshotUpdate(title=fields["title"])
            )
        return item

    async def update_item(
        self,
        item_id: str,
        user_id: str,
        summary: Optional[str] = None,
        sort_order: Optional[int] = None,
    ) -> ContentItem:
        item = await self.get_owned_item(item_id, user_id)
        fields = {}
        if summary is not None:
            fields["summary"] = summary
        if sort_order is not None:
            fields["sort_order"] = sort_order
        if not fields:
            return item

        item = await self.repository.update_item(item.id, fields)
        if (
            "summary" in fields
            and item.current_version_id
            and item.current_version_id != item.published_version_id
        ):
            await self.versions.update_version_snapshot(
                item.current_version_id, VersionSnapshotUpdate(summary=summary)
            )
        return item

    async def reorder_projects(self, user_id: str, item_ids: List[str]) -> List[ContentItem]:
        """Assign ``sort_order`` 0..n-1 following the given order."""
        items = []
        for item_id in item_ids:
            item = await self.get_owned_item(item_id, user_id)
            if item.type != ContentType.PROJECT:
                raise InvalidInputError(f"Item {item_id} is not a project")
            items.append(item)

        result = []
        for index, item in enumerate(items):
            result.append(await self.repository.update_item(item.id, {"sort_order": index}))
        logger.info(f"Reordered {len(result)} project(s)")
        return result

    async def update_cover_image(
        self,
        item_id: str,
        user_id: str,
        cover_image: Optional[str],
    ) -> ContentItem:
        """
        Set or clear the cover image and keep the draft's cover ref in step.

        The published snapshot's refs are never touched: when the draft is the
        snapshot, a new draft version is forked first.
        """
        item = await self.get_owned_item(item_id, user_id)
        item = await self.repository.update_item(item.id, {"cover_image": cover_image})

        if not item.current_version_id:
            return item

        key = self.tracker.to_object_key(cover_image) if cover_image else None
        assets = await self.repository.get_assets_by_keys([key]) if key else []
        if not assets:
            refs = await self.repository.list_refs(item.current_version_id, UsageType.COVER)
            if not refs:
                return item

        draft = await self._writable_draft(item, user_id)
        if assets:
            await self.tracker.record_image(
                item.id,
                draft.id,
                cover_image,
                UsageType.COVER,
                owner_id=user_id,
                object_key=key,
            )
        else:
            refs = await self.repository.list_refs(draft.id, UsageType.COVER)
            await self.repository.delete_refs(
                draft.id, [ref.asset_id for ref in refs], UsageType.COVER
            )
            await self.tracker.enqueue_orphaned_assets(item.id)
        return await self.get_owned_item(item.id, user_id)

    async def add_tag(self, item_id: str, user_id: str, tag_id: str) -> ContentItem:
        item = await self.get_owned_item(item_id, user_id)
        await self.tags.add_to_item(item.id, tag_id)
        return item

    async def remove_tag(self, item_id: str, user_id: str, tag_id: str) -> ContentItem:
        item = await self.get_owned_item(item_id, user_id)
        await self.tags.remove_from_item(item.id, tag_id)
        return item

    async def record_image(
        self,
        item_id: str,
        user_id: str,
        url: str,
        usage_type: UsageType = UsageType.EMBEDDED,
        object_key: Optional[str] = None,
        mime_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
    ) -> Tuple[Asset, str]:
        """
        Register an uploaded image against the item's draft version.

        Items without a draft get an empty one first. Recording a cover also
        sets the item's ``cover_image``.

        Returns:
            (asset, version_id) the reference was attached to.

        Raises:
            InvalidInputError: If the key lies outside the item's namespace.
        """
        item = await self.get_owned_item(item_id, user_id)
        key = (object_key or "").strip() or self.tracker.to_object_key(url)
        if not key or not key.startswith(item_asset_prefix(item.id)):
            raise InvalidInputError("Image does not belong to this item")

        current = await self._writable_draft(item, user_id)

        asset = await self.tracker.record_image(
            item.id,
            current.id,
            url,
            usage_type,
            owner_id=user_id,
            object_key=key,
            mime_type=mime_type,
            size_bytes=size_bytes,
        )
        if usage_type == UsageType.COVER and item.cover_image != url:
            await self.repository.update_item(item.id, {"cover_image": url})
        return asset, current.id

    async def delete_item(self, item_id: str, user_id: str) -> List[str]:
        """
        Delete an item with all versions, refs and tag links.

        Every asset in the item's namespace is queued for deletion first.

        Returns:
            Object keys queued for deletion.
        """
        item = await self.get_owned_item(item_id, user_id)
        self.cancel_pending_saves(item.id)
        queued = await self.tracker.enqueue_item_assets(item.id)
        await self.repository.delete_item(item.id)
        self._save_status.pop(item.id, None)
        self._status_before_pending.pop(item.id, None)
        logger.info(f"Deleted {item.type.value} {item.id}")
        return queued

    # -------------------------------------------------------------------------
    # Saving
    # -------------------------------------------------------------------------

    async def autosave(self, item_id: str, user_id: str, body_json: str) -> ContentVersion:
        """
        Write the editor body into the draft.

        - No draft yet: create version 1 ("Initial draft").
        - Draft is the published snapshot: fork a new version ("Draft edits").
        - Otherwise: update the draft version in place.

        Never changes the item's status or published pointer.
        """
        item = await self.get_owned_item(item_id, user_id)
        current = await self._current_version(item)

        if current is None:
            return await self.versions.create_version(
                item.id,
                title=item.title,
                body_json=body_json,
                summary=item.summary,
                created_by=user_id,
                change_description="Initial draft",
                make_current=True,
            )

        if current.id == item.published_version_id:
            return await self.versions.create_version(
                item.id,
                title=item.title,
                body_json=body_json,
                summary=current.summary,
                created_by=user_id,
                change_description="Draft edits",
                make_current=True,
                clone_refs_from=current.id,
            )

        return await self.versions.update_version_snapshot(
            current.id, VersionSnapshotUpdate(body_json=body_json)
        )

    async def smart_save_version(
        self,
        item_id: str,
        user_id: str,
        draft: Optional[DraftInput] = None,
        description: Optional[str] = None,
        force_new_version: bool = False,
    ) -> SmartSaveResult:
        """
        Save the draft, cutting a new version only for significant changes.

        The latest version is updated in place when the draft body is at least
        ``similarity_threshold`` similar to it, unless the save is forced or
        the latest version is the published snapshot. Otherwise version
        latest+1 is created and becomes the draft.

        Args:
            item_id: Item to save.
            user_id: Acting user (must own the item).
            draft: Live editor state; defaults to the stored draft.
            description: Change description for the version.
            force_new_version: Always create a new version.

        Returns:
            SmartSaveResult with the affected version and action taken.
        """
        item = await self.get_owned_item(item_id, user_id)
        current = await self._current_version(item)
        latest = await self.versions.get_latest_version(item.id)
        title, summary, body_json = self._resolve_draft(item, current, draft)

        if latest is None:
            version = await self.versions.create_version(
                item.id,
                title=title,
                body_json=body_json,
                summary=summary,
                created_by=user_id,
                change_description=description or "Initial version",
                make_current=True,
            )
            return SmartSaveResult(
                version_id=version.id,
                version_number=version.version_number,
                action=SaveAction.CREATED,
            )

        similarity = text_similarity(extract_text(latest.body_json), extract_text(body_json))
        latest_is_published = latest.id == item.published_version_id

        if (
            not force_new_version
            and not latest_is_published
            and is_minor_edit(similarity, self.similarity_threshold)
        ):
            version = await self.versions.update_version_snapshot(
                latest.id,
                VersionSnapshotUpdate(
                    title=title,
                    summary=summary,
                    body_json=body_json,
                    change_description=description,
                ),
            )
            pointer = {}
            if item.current_version_id != version.id:
                pointer["current_version_id"] = version.id
            if item.title != version.title:
                pointer["title"] = version.title
            if item.summary != version.summary:
                pointer["summary"] = version.summary
            if pointer:
                await self.repository.update_item(item.id, pointer)

            logger.debug(
                f"Updated version {version.version_number} of item {item.id} in place "
                f"(similarity {similarity:.2f})"
            )
            return SmartSaveResult(
                version_id=version.id,
                version_number=version.version_number,
                action=SaveAction.UPDATED,
                similarity=similarity,
            )

        version = await self.versions.create_version(
            item.id,
            title=title,
            body_json=body_json,
            summary=summary,
            created_by=user_id,
            change_description=description,
            version_number=latest.version_number + 1,
            make_current=True,
            clone_refs_from=current.id if current else latest.id,
        )
        return SmartSaveResult(
            version_id=version.id,
            version_number=version.version_number,
            action=SaveAction.CREATED,
            similarity=similarity,
        )

    @staticmethod
    def _resolve_draft(
        item: ContentItem,
        current: Optional[ContentVersion],
        draft: Optional[DraftInput],
    ) -> Tuple[str, Optional[str], str]:
        """(title, summary, body_json) of the live draft."""
        draft = draft or DraftInput()
        title = draft.title
        if title is None:
            title = item.title or (current.title if current else "") or "Untitled"
        summary = draft.summary
        if summary is None:
            summary = current.summary if current else item.summary
        body_json = draft.body_json
        if body_json is None:
            body_json = current.body_json if current else "[]"
        return title, summary, body_json

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    async def publish(
        self,
        item_id: str,
        user_id: str,
        draft: Optional[DraftInput] = None,
    ) -> PublishResult:
        """
        Save the draft and make that version the public snapshot.

        The previously published version is labelled ``archived``. If the
        version labels cannot be written the item row is restored.
        """
        item = await self.get_owned_item(item_id, user_id)

        if draft is None and item.is_published and item.current_version_id == item.published_version_id:
            version = await self.versions.get_version(item.published_version_id)
            return PublishResult(
                item_id=item.id,
                version_id=version.id,
                version_number=version.version_number,
                published_at=item.published_at or item.updated_at,
            )

        saved = await self.smart_save_version(item.id, user_id, draft, description="Published")
        previous_id = item.published_version_id
        published_at = utcnow()

        await self.repository.update_item(item.id, {
            "published_version_id": saved.version_id,
            "status": ContentStatus.PUBLISHED,
            "published_at": published_at,
        })
        try:
            await self.repository.update_version(
                saved.version_id, {"snapshot_status": SnapshotStatus.PUBLISHED}
            )
            if previous_id and previous_id != saved.version_id:
                await self.repository.update_version(
                    previous_id, {"snapshot_status": SnapshotStatus.ARCHIVED}
                )
        except Exception as e:
            logger.error(f"Failed to label published version for item {item.id}, rolling back: {e}")
            await self.repository.update_item(item.id, {
                "published_version_id": item.published_version_id,
                "status": item.status,
                "published_at": item.published_at,
            })
            raise

        logger.info(f"Published item {item.id} at version {saved.version_number}")
        return PublishResult(
            item_id=item.id,
            version_id=saved.version_id,
            version_number=saved.version_number,
            published_at=published_at,
        )

    async def unpublish(self, item_id: str, user_id: str) -> ContentItem:
        """Withdraw the public snapshot; versions are left untouched."""
        item = await self.get_owned_item(item_id, user_id)
        if item.status == ContentStatus.DRAFT and item.published_version_id is None:
            return item

        item = await self.repository.update_item(item.id, {
            "published_version_id": None,
            "status": ContentStatus.DRAFT,
            "published_at": None,
        })
        logger.info(f"Unpublished item {item.id}")
        return item

    async def restore_version(self, item_id: str, user_id: str, version_number: int) -> ContentVersion:
        """
        Copy an old version into a new draft version.

        The published pointer is not moved.
        """
        item = await self.get_owned_item(item_id, user_id)
        source = await self.versions.get_version_by_number(item.id, version_number)
        return await self.versions.create_version(
            item.id,
            title=source.title,
            body_json=source.body_json,
            summary=source.summary,
            created_by=user_id,
            change_description=f"Restored to version {version_number}",
            make_current=True,
            clone_refs_from=source.id,
        )

    async def list_versions(self, item_id: str, user_id: str) -> VersionListResponse:
        item = await self.get_owned_item(item_id, user_id)
        versions = await self.versions.list_versions(item.id)
        return VersionListResponse(
            item_id=item.id,
            versions=versions,
            total=len(versions),
            current_version_id=item.current_version_id,
            published_version_id=item.published_version_id,
        )

    async def get_version(self, item_id: str, user_id: str, version_number: int) -> ContentVersion:
        item = await self.get_owned_item(item_id, user_id)
        return await self.versions.get_version_by_number(item.id, version_number)

    async def has_draft_changes(
        self,
        item_id: str,
        user_id: str,
        draft: Optional[DraftInput] = None,
    ) -> bool:
        """
        Whether the draft differs from the published snapshot.

        Unpublished items never have "draft changes". A published pointer to a
        missing version counts as changed.
        """
        item = await self.get_owned_item(item_id, user_id)
        if not item.published_version_id:
            return False
        published = await self.repository.get_version(item.published_version_id)
        if published is None:
            return True

        current = await self._current_version(item)
        title, _, body_json = self._resolve_draft(item, current, draft)
        if title != published.title:
            return True
        similarity = text_similarity(extract_text(published.body_json), extract_text(body_json))
        return similarity < self.similarity_threshold

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    async def _build_view(
        self,
        item: ContentItem,
        version: Optional[ContentVersion],
        is_draft: bool,
    ) -> ContentView:
        tags = await self.repository.get_tags_for_items([item.id])
        profiles = await self.repository.get_profiles([item.owner_id] if item.owner_id else [])

        if is_draft:
            title, summary = item.title, item.summary
        else:
            title, summary = version.title, version.summary

        return ContentView(
            id=item.id,
            type=item.type,
            slug=item.slug,
            status=item.status,
            title=title,
            summary=summary,
            body_json=version.body_json if version else "[]",
            cover_image=item.cover_image,
            version_id=version.id if version else None,
            version_number=version.version_number if version else None,
            published_at=item.published_at,
            updated_at=item.updated_at,
            is_draft=is_draft,
            tags=tags.get(item.id, []),
            author=profiles.get(item.owner_id) if item.owner_id else None,
        )

    async def get_reader_view(
        self,
        content_type: ContentType,
        slug: str,
        viewer_id: Optional[str] = None,
        preview: bool = False,
    ) -> ContentView:
        """
        Resolve what a visitor sees at a slug.

        Owners asking for a preview get the draft; everyone else gets the
        published snapshot.

        Raises:
            NotFoundError: If no item has the slug.
            NotPublishedError: If the item has no published snapshot.
        """
        item = await self.repository.get_item_by_slug(content_type, slug)
        if item is None:
            raise NotFoundError(resource_type="content_item", resource_id=slug)

        if preview and viewer_id and viewer_id == item.owner_id:
            return await self._build_view(item, await self._current_version(item), is_draft=True)

        if not item.published_version_id:
            raise NotPublishedError(resource_id=slug)
        version = await self.repository.get_version(item.published_version_id)
        if version is None:
            raise NotPublishedError(resource_id=slug)
        return await self._build_view(item, version, is_draft=False)

    async def get_item_view(self, item_id: str, user_id: str) -> ContentView:
        """Owner's editing view of an item (the draft)."""
        item = await self.get_owned_item(item_id, user_id)
        return await self._build_view(item, await self._current_version(item), is_draft=True)

    async def list_items(
        self,
        content_type: ContentType,
        published_only: bool = True,
        page: int = 1,
        page_size: int = 20,
        tag_id: Optional[str] = None,
        owner_id: Optional[str] = None,
    ) -> ContentListResponse:
        """
        Paginated listing.

        Published listings show each item's published snapshot title and
        summary, never the draft.
        """
        page = max(page, 1)
        page_size = max(page_size, 1)

        item_ids = None
        if tag_id:
            item_ids = await self.repository.list_item_ids_for_tag(tag_id)
            if not item_ids:
                return ContentListResponse(items=[], total=0, page=page, page_size=page_size)

        items, total = await self.repository.list_items(
            content_type,
            published_only=published_only,
            offset=(page - 1) * page_size,
            limit=page_size,
            item_ids=item_ids,
            owner_id=owner_id,
        )

        tags = await self.repository.get_tags_for_items([i.id for i in items])
        profiles = await self.repository.get_profiles(
            sorted({i.owner_id for i in items if i.owner_id})
        )
        snapshots: Dict[str, ContentVersion] = {}
        if published_only:
            versions = await self.repository.get_versions(
                [i.published_version_id for i in items if i.published_version_id]
            )
            snapshots = {v.id: v for v in versions}

        summaries = []
        for item in items:
            snapshot = snapshots.get(item.published_version_id) if published_only else None
            summaries.append(ContentSummary(
                id=item.id,
                type=item.type,
                slug=item.slug,
                status=item.status,
                title=snapshot.title if snapshot else item.title,
                summary=snapshot.summary if snapshot else item.summary,
                cover_image=item.cover_image,
                published_at=item.published_at,
                updated_at=item.updated_at,
                sort_order=item.sort_order,
                tags=tags.get(item.id, []),
                author=profiles.get(item.owner_id) if item.owner_id else None,
            ))

        return ContentListResponse(items=summaries, total=total, page=page, page_size=page_size)

    async def count_published(self, content_type: ContentType) -> int:
        _, total = await self.repository.list_items(content_type, published_only=True, limit=1)
        return total

    async def recent_items(self, content_type: ContentType, limit: int = 3) -> List[ContentSummary]:
        listing = await self.list_items(content_type, published_only=True, page=1, page_size=limit)
        return listing.items

    # -------------------------------------------------------------------------
    # Diffs
    # -------------------------------------------------------------------------

    async def diff_versions(
        self,
        item_id: str,
        user_id: str,
        version_a: int,
        version_b: int,
    ) -> VersionDiffResponse:
        """Line diff between two versions, older one on the left."""
        item = await self.get_owned_item(item_id, user_id)
        older, newer = sorted((version_a, version_b))
        old = await self.versions.get_version_by_number(item.id, older)
        new = await self.versions.get_version_by_number(item.id, newer)
        return self._diff_response(item.id, old, new)

    async def diff_draft_against_published(self, item_id: str, user_id: str) -> DraftChangesResponse:
        """Draft-change flag plus the diff from the published snapshot to the draft."""
        has_changes = await self.has_draft_changes(item_id, user_id)
        item = await self.get_item(item_id)

        diff = None
        if item.published_version_id and item.current_version_id:
            published = await self.repository.get_version(item.published_version_id)
            current = await self.repository.get_version(item.current_version_id)
            if published and current:
                diff = self._diff_response(item.id, published, current)

        return DraftChangesResponse(item_id=item.id, has_draft_changes=has_changes, diff=diff)

    @staticmethod
    def _diff_response(item_id: str, old: ContentVersion, new: ContentVersion) -> VersionDiffResponse:
        result = diff_documents(old.body_json, new.body_json)
        return VersionDiffResponse(
            item_id=item_id,
            from_version=old.version_number,
            to_version=new.version_number,
            lines=result.lines,
            added=result.added,
            removed=result.removed,
            has_changes=result.has_changes,
            bar=result.proportion_bar(),
        )

    # -------------------------------------------------------------------------
    # Debounced saves
    # -------------------------------------------------------------------------

    def save_status(self, item_id: str) -> SaveStatus:
        return self._save_status.get(item_id, SaveStatus.IDLE)

    async def _tracked(self, item_id: str, save: Callable[[], Awaitable[T]]) -> T:
        self._status_before_pending.pop(item_id, None)
        self._save_status[item_id] = SaveStatus.SAVING
        try:
            result = await save()
        except Exception:
            self._save_status[item_id] = SaveStatus.ERROR
            raise
        self._save_status[item_id] = SaveStatus.SAVED
        return result

    async def save_draft(
        self,
        item_id: str,
        user_id: str,
        body_json: str,
        schedule_snapshot: bool = True,
    ) -> ContentVersion:
        """
        Autosave immediately, then debounce a version snapshot.

        Supersedes any content autosave still waiting for this item.
        """
        self.scheduler.cancel(f"content:{item_id}")
        version = await self._tracked(item_id, lambda: self.autosave(item_id, user_id, body_json))
        if schedule_snapshot:
            self.schedule_version_snapshot(item_id, user_id)
        return version

    async def manual_save(
        self,
        item_id: str,
        user_id: str,
        draft: Optional[DraftInput] = None,
        description: Optional[str] = None,
        force_new_version: bool = False,
    ) -> SmartSaveResult:
        """Explicit save; pending background saves for the item are dropped."""
        self.cancel_pending_saves(item_id)
        return await self._tracked(
            item_id,
            lambda: self.smart_save_version(
                item_id,
                user_id,
                draft=draft,
                description=description,
                force_new_version=force_new_version,
            ),
        )

    def schedule_autosave(self, item_id: str, user_id: str, body_json: str) -> None:
        """
        Debounce a content autosave; on success a version snapshot is
        scheduled in turn.
        """
        async def run() -> None:
            await self._tracked(item_id, lambda: self.autosave(item_id, user_id, body_json))
            self.schedule_version_snapshot(item_id, user_id)

        self._status_before_pending.setdefault(item_id, self.save_status(item_id))
        self._save_status[item_id] = SaveStatus.SAVING
        self.scheduler.schedule(f"content:{item_id}", self.autosave_delay, run)

    def schedule_version_snapshot(self, item_id: str, user_id: str) -> None:
        async def run() -> None:
            await self._tracked(item_id, lambda: self.smart_save_version(item_id, user_id))

        self.scheduler.schedule(f"version:{item_id}", self.snapshot_delay, run)

    def cancel_pending_saves(self, item_id: str) -> None:
        """
        Drop debounced saves that have not started yet.

        A status left at ``saving`` only by the dropped timers goes back to
        what it was before they were scheduled.
        """
        content_key = f"content:{item_id}"
        version_key = f"version:{item_id}"
        cancelled_content = self.scheduler.cancel(content_key)
        cancelled_version = self.scheduler.cancel(version_key)
        if not (cancelled_content or cancelled_version):
            return
        if self.scheduler.pending(content_key) or self.scheduler.pending(version_key):
            return
        previous = self._status_before_pending.pop(item_id, SaveStatus.IDLE)
        if self._save_status.get(item_id) == SaveStatus.SAVING:
            self._save_status[item_id] = previous

    async def shutdown(self) -> None:
        await self.scheduler.cancel_all()


# =============================================================================
# Factory
# =============================================================================


class ContentServiceFactory:
    """
    Factory class for the content service.

    Wires the configured repository, asset tracker and versioning settings.
    """

    _instance: Optional[ContentService] = None

    @classmethod
    def get_service(cls) -> ContentService:
        if cls._instance is not None:
            return cls._instance

        from src.config import get_settings

        settings = get_settings()
        repository = get_content_repository()
        tracker = AssetReferenceTracker(
            repository,
            cdn_url=settings.storage.s3_cdn_url,
            tracked_prefixes=settings.storage.tracked_prefixes,
        )
        cls._instance = ContentService(
            repository,
            tracker=tracker,
            similarity_threshold=settings.versioning.similarity_threshold,
            autosave_delay=settings.versioning.autosave_delay_seconds,
            snapshot_delay=settings.versioning.snapshot_delay_seconds,
        )
        return cls._instance

    @classmethod
    def set_service(cls, service: ContentService) -> None:
        cls._instance = service

    @classmethod
    def reset(cls) -> None:
        """Reset the service instance. Useful for testing."""
        cls._instance = None


def get_content_service() -> ContentService:
    """Get the content service instance."""
    return ContentServiceFactory.get_service()
