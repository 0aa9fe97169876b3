"""
Asset reference tracking.

Every version records which uploaded assets it uses (``embedded`` in the body
or as the ``cover``). Assets are never deleted inline: when a save leaves an
asset in an item's namespace (``assets/<item_id>/``) with no references left
anywhere, it is put on the deletion queue and the garbage collector
(``gc.py``) removes it later after re-checking.
"""

import logging
import uuid
from typing import Any, List, Optional, Set
from urllib.parse import urlparse

from src.content.extraction import parse_blocks
from src.content.repository import BaseContentRepository, utcnow
from src.errors import InvalidInputError, ParseError
from src.types.assets import Asset, AssetRef, UsageType

logger = logging.getLogger(__name__)

DEFAULT_TRACKED_PREFIXES = ("assets/", "avatars/")
URL_FIELDS = ("url", "src")


def item_asset_prefix(item_id: str) -> str:
    """Storage namespace owned by a content item."""
    return f"assets/{item_id}/"


def _origin(url: str) -> Optional[str]:
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}".lower()


class AssetReferenceTracker:
    """Maps document URLs to assets and keeps version references in sync."""

    def __init__(
        self,
        repository: BaseContentRepository,
        cdn_url: Optional[str] = None,
        tracked_prefixes: Optional[List[str]] = None,
    ) -> None:
        self.repository = repository
        self.cdn_origin = _origin(cdn_url) if cdn_url else None
        self.tracked_prefixes = tuple(tracked_prefixes or DEFAULT_TRACKED_PREFIXES)

    # -------------------------------------------------------------------------
    # URL -> object key
    # -------------------------------------------------------------------------

    def to_object_key(self, url: str) -> Optional[str]:
        """
        Derive the storage key for a public asset URL.

        Returns None for URLs outside the CDN origin (when one is configured),
        relative URLs, and keys outside the tracked prefixes.
        """
        if not isinstance(url, str) or not url:
            return None
        origin = _origin(url)
        if origin is None:
            return None
        if self.cdn_origin and origin != self.cdn_origin:
            return None

        path = urlparse(url).path
        key = path[1:] if path.startswith("/") else path
        if not key or not key.startswith(self.tracked_prefixes):
            return None
        return key

    def extract_asset_keys(self, body_json: Optional[str]) -> List[str]:
        """Collect object keys from every ``url``/``src`` string in a document."""
        try:
            blocks = parse_blocks(body_json)
        except ParseError:
            return []

        keys: List[str] = []
        seen: Set[str] = set()

        def visit(node: Any) -> None:
            if isinstance(node, list):
                for child in node:
                    visit(child)
            elif isinstance(node, dict):
                for field, value in node.items():
                    if field in URL_FIELDS and isinstance(value, str):
                        key = self.to_object_key(value)
                        if key and key not in seen:
                            seen.add(key)
                            keys.append(key)
                    else:
                        visit(value)

        visit(blocks)
        return keys

    # -------------------------------------------------------------------------
    # Reference maintenance
    # -------------------------------------------------------------------------

    async def sync_embedded_refs(self, item_id: str, version_id: str, body_json: Optional[str]) -> None:
        """
        Make a version's embedded refs match the assets its body links to.

        Only keys inside the item's own namespace that already have an asset
        row are tracked. Newly unreferenced assets are queued for deletion.
        """
        prefix = item_asset_prefix(item_id)
        keys = [k for k in self.extract_asset_keys(body_json) if k.startswith(prefix)]
        assets = await self.repository.get_assets_by_keys(keys) if keys else []
        desired = {asset.id for asset in assets}

        existing = {
            ref.asset_id
            for ref in await self.repository.list_refs(version_id, UsageType.EMBEDDED)
        }

        stale = sorted(existing - desired)
        if stale:
            await self.repository.delete_refs(version_id, stale, UsageType.EMBEDDED)

        missing = sorted(desired - existing)
        if missing:
            await self.repository.insert_refs([
                AssetRef(content_version_id=version_id, asset_id=asset_id, usage_type=UsageType.EMBEDDED)
                for asset_id in missing
            ])

        if stale or missing:
            logger.debug(
                f"Synced embedded assets for version {version_id}: "
                f"+{len(missing)} -{len(stale)}"
            )
        await self.enqueue_orphaned_assets(item_id)

    async def clone_refs(self, from_version_id: str, to_version_id: str) -> None:
        """Copy every ref of one version onto another."""
        refs = await self.repository.list_refs(from_version_id)
        if not refs:
            return
        await self.repository.insert_refs([
            AssetRef(content_version_id=to_version_id, asset_id=ref.asset_id, usage_type=ref.usage_type)
            for ref in refs
        ])

    async def record_image(
        self,
        item_id: str,
        version_id: str,
        url: str,
        usage_type: UsageType = UsageType.EMBEDDED,
        owner_id: Optional[str] = None,
        object_key: Optional[str] = None,
        mime_type: Optional[str] = None,
        size_bytes: Optional[int] = None,
    ) -> Asset:
        """
        Register an uploaded image and attach it to a version.

        A cover ref replaces whatever other cover the version had.

        Raises:
            InvalidInputError: If no storage key can be derived from the URL.
        """
        key = (object_key or "").strip() or self.to_object_key(url)
        if not key:
            raise InvalidInputError("URL is not a tracked asset URL")

        asset = await self.repository.upsert_asset(Asset(
            id=str(uuid.uuid4()),
            owner_id=owner_id,
            object_key=key,
            public_url=url,
            asset_type="image",
            storage_provider="s3",
            mime_type=mime_type,
            size_bytes=size_bytes,
            created_at=utcnow(),
        ))

        if usage_type == UsageType.COVER:
            others = [
                ref.asset_id
                for ref in await self.repository.list_refs(version_id, UsageType.COVER)
                if ref.asset_id != asset.id
            ]
            if others:
                await self.repository.delete_refs(version_id, others, UsageType.COVER)

        await self.repository.insert_refs([
            AssetRef(content_version_id=version_id, asset_id=asset.id, usage_type=usage_type)
        ])
        await self.enqueue_orphaned_assets(item_id)

        logger.info(f"Recorded {usage_type.value} asset {key} for item {item_id}")
        return asset

    # -------------------------------------------------------------------------
    # Deletion queue
    # -------------------------------------------------------------------------

    async def enqueue_orphaned_assets(self, item_id: str) -> int:
        """Queue every asset in the item's namespace that nothing references."""
        assets = await self.repository.list_assets_with_prefix(item_asset_prefix(item_id))
        if not assets:
            return 0

        counts = await self.repository.count_refs([asset.id for asset in assets])
        orphaned = [asset for asset in assets if counts.get(asset.id, 0) == 0]
        if not orphaned:
            return 0

        queued = await self.repository.enqueue_deletions(orphaned)
        logger.info(f"Queued {queued} orphaned asset(s) for deletion (item {item_id})")
        return queued

    async def enqueue_item_assets(self, item_id: str) -> List[str]:
        """Queue every asset in the item's namespace regardless of refs."""
        assets = await self.repository.list_assets_with_prefix(item_asset_prefix(item_id))
        if assets:
            await self.repository.enqueue_deletions(assets)
            logger.info(f"Queued {len(assets)} asset(s) of item {item_id} for deletion")
        return [asset.object_key for asset in assets]
