"""
Tag management for posts and projects.
"""

import logging
import re
import uuid
from typing import List, Optional

from src.errors import ConflictError, InvalidInputError, NotFoundError
from src.types.content import Tag

from .repository import BaseContentRepository

logger = logging.getLogger(__name__)


def slugify(text: str) -> str:
    """
    Convert text to a URL slug.

    Lowercases and keeps only ASCII letters, digits, underscores, whitespace
    and hyphens. Whitespace runs become hyphens and repeated hyphens collapse.
    """
    value = (text or "").strip().lower()
    value = re.sub(r"[^a-z0-9_\s-]", "", value)
    value = re.sub(r"\s+", "-", value)
    value = re.sub(r"-+", "-", value)
    return value.strip("-")


class TagService:
    """CRUD for tags and item/tag links."""

    def __init__(self, repository: BaseContentRepository) -> None:
        self.repository = repository

    async def list_tags(self) -> List[Tag]:
        return await self.repository.list_tags()

    async def get_tag(self, tag_id: str) -> Tag:
        tag = await self.repository.get_tag(tag_id)
        if tag is None:
            raise NotFoundError(resource_type="tag", resource_id=tag_id)
        return tag

    async def _check_slug(self, slug: str, exclude_id: Optional[str] = None) -> None:
        if not slug:
            raise InvalidInputError("Tag name must contain letters or numbers")
        existing = await self.repository.get_tag_by_slug(slug)
        if existing and existing.id != exclude_id:
            raise ConflictError(f"Tag '{existing.name}' already exists", resource_type="tag")

    async def create_tag(self, name: str) -> Tag:
        name = name.strip()
        slug = slugify(name)
        await self._check_slug(slug)

        tag = await self.repository.insert_tag(Tag(id=str(uuid.uuid4()), name=name, slug=slug))
        logger.info(f"Created tag {tag.slug}")
        return tag

    async def rename_tag(self, tag_id: str, name: str) -> Tag:
        await self.get_tag(tag_id)
        name = name.strip()
        slug = slugify(name)
        await self._check_slug(slug, exclude_id=tag_id)
        return await self.repository.update_tag(tag_id, {"name": name, "slug": slug})

    async def delete_tag(self, tag_id: str) -> None:
        await self.get_tag(tag_id)
        await self.repository.delete_tag(tag_id)
        logger.info(f"Deleted tag {tag_id}")

    async def add_to_item(self, item_id: str, tag_id: str) -> None:
        await self.get_tag(tag_id)
        await self.repository.add_item_tag(item_id, tag_id)

    async def remove_from_item(self, item_id: str, tag_id: str) -> None:
        await self.repository.remove_item_tag(item_id, tag_id)

    async def get_tag_by_slug(self, slug: str) -> Optional[Tag]:
        return await self.repository.get_tag_by_slug(slugify(slug))
