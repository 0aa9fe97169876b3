"""
Public (reader-facing) content endpoints.

Anonymous visitors only ever see published snapshots. An owner may pass
``preview=true`` with a valid token to read the current draft instead.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.content import get_content_service
from src.types.content import (
    ContentCollection,
    ContentListResponse,
    ContentType,
    ContentViewResponse,
    PortfolioOverviewResponse,
    TagListResponse,
)

from ..auth import get_optional_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/public", tags=["public"])


@router.get(
    "/tags",
    response_model=TagListResponse,
    summary="List tags",
)
async def list_tags() -> TagListResponse:
    service = get_content_service()
    return TagListResponse(tags=await service.tags.list_tags())


@router.get(
    "/overview",
    response_model=PortfolioOverviewResponse,
    summary="Landing page overview",
    description="Published counts and the most recent posts and projects.",
)
async def overview(
    limit: int = Query(default=3, ge=1, le=20, description="Entries per collection"),
) -> PortfolioOverviewResponse:
    service = get_content_service()
    return PortfolioOverviewResponse(
        post_count=await service.count_published(ContentType.POST),
        project_count=await service.count_published(ContentType.PROJECT),
        recent_posts=await service.recent_items(ContentType.POST, limit),
        recent_projects=await service.recent_items(ContentType.PROJECT, limit),
    )


@router.get(
    "/{collection}",
    response_model=ContentListResponse,
    summary="List published content",
    description="Paginated published posts or projects, optionally filtered by tag slug.",
)
async def list_published(
    collection: ContentCollection,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    tag: Optional[str] = Query(default=None, description="Tag slug to filter by"),
) -> ContentListResponse:
    """
    Readers' listing.

    Titles and summaries come from each item's published snapshot. An
    unknown tag yields an empty page.
    """
    service = get_content_service()

    tag_id = None
    if tag:
        found = await service.tags.get_tag_by_slug(tag)
        if found is None:
            return ContentListResponse(items=[], total=0, page=page, page_size=page_size)
        tag_id = found.id

    return await service.list_items(
        collection.content_type,
        published_only=True,
        page=page,
        page_size=page_size,
        tag_id=tag_id,
    )


@router.get(
    "/{collection}/{slug}",
    response_model=ContentViewResponse,
    summary="Read a post or project",
    responses={
        404: {"description": "No such item, or it has not been published"},
    },
)
async def read_content(
    collection: ContentCollection,
    slug: str,
    preview: bool = Query(default=False, description="Owner-only draft preview"),
    viewer_id: Optional[str] = Depends(get_optional_user),
) -> ContentViewResponse:
    """
    Render an item for readers.

    Returns the published snapshot, or the draft when the owner asks for a
    preview. Unpublished items are reported as not found to everyone else.
    """
    service = get_content_service()
    view = await service.get_reader_view(
        collection.content_type,
        slug,
        viewer_id=viewer_id,
        preview=preview,
    )
    return ContentViewResponse(item=view)
