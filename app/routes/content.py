"""
Admin content endpoints.

Provides endpoints for:
- Creating and listing posts and projects
- Item-level edits (title, slug, summary, ordering, cover image)
- Tagging items
- Deleting items (their assets are queued for garbage collection)

Authorization:
- All endpoints require a signed-in user
- Items can only be read or changed by their owner
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from src.content import get_content_service
from src.types.content import (
    ContentCollection,
    ContentItemResponse,
    ContentListResponse,
    ContentViewResponse,
    CoverImageRequest,
    CreateContentRequest,
    DeleteContentResponse,
    ReorderProjectsRequest,
    ReorderProjectsResponse,
    UpdateContentRequest,
)

from ..auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["content"])


@router.post(
    "/projects/reorder",
    response_model=ReorderProjectsResponse,
    summary="Reorder projects",
    description="Assign project sort order following the given list of IDs.",
)
async def reorder_projects(
    request: ReorderProjectsRequest,
    user_id: str = Depends(get_current_user),
) -> ReorderProjectsResponse:
    service = get_content_service()
    items = await service.reorder_projects(user_id, request.item_ids)
    return ReorderProjectsResponse(items=items)


@router.post(
    "/{collection}",
    response_model=ContentItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a post or project",
)
async def create_content(
    collection: ContentCollection,
    request: CreateContentRequest,
    user_id: str = Depends(get_current_user),
) -> ContentItemResponse:
    """
    Create an item.

    The slug is derived from the title when not given. With ``body_json``
    version 1 is created; with ``publish`` it is published straight away.
    """
    service = get_content_service()
    item = await service.create_item(
        collection.content_type,
        user_id,
        title=request.title,
        slug=request.slug,
        summary=request.summary,
        body_json=request.body_json,
        cover_image=request.cover_image,
        tag_ids=request.tag_ids,
        publish=request.publish,
    )
    return ContentItemResponse(item=item)


@router.get(
    "/{collection}",
    response_model=ContentListResponse,
    summary="List own content",
    description="Drafts and published items owned by the caller.",
)
async def list_content(
    collection: ContentCollection,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    tag_id: Optional[str] = Query(default=None),
    user_id: str = Depends(get_current_user),
) -> ContentListResponse:
    service = get_content_service()
    return await service.list_items(
        collection.content_type,
        published_only=False,
        page=page,
        page_size=page_size,
        tag_id=tag_id,
        owner_id=user_id,
    )


@router.get(
    "/content/{item_id}",
    response_model=ContentViewResponse,
    summary="Get an item for editing",
)
async def get_content(
    item_id: str,
    user_id: str = Depends(get_current_user),
) -> ContentViewResponse:
    """The owner's editing view: item metadata plus the current draft body."""
    service = get_content_service()
    return ContentViewResponse(item=await service.get_item_view(item_id, user_id))


@router.patch(
    "/content/{item_id}",
    response_model=ContentItemResponse,
    summary="Update item metadata",
)
async def update_content(
    item_id: str,
    request: UpdateContentRequest,
    user_id: str = Depends(get_current_user),
) -> ContentItemResponse:
    """
    Change title, slug, summary or sort order.

    Title and summary changes flow into the draft version unless the draft
    is the published snapshot.
    """
    service = get_content_service()
    item = await service.rename_item(item_id, user_id, title=request.title, slug=request.slug)
    if request.summary is not None or request.sort_order is not None:
        item = await service.update_item(
            item_id,
            user_id,
            summary=request.summary,
            sort_order=request.sort_order,
        )
    return ContentItemResponse(item=item)


@router.delete(
    "/content/{item_id}",
    response_model=DeleteContentResponse,
    summary="Delete an item",
)
async def delete_content(
    item_id: str,
    user_id: str = Depends(get_current_user),
) -> DeleteContentResponse:
    """Delete an item and its history; its uploads are queued for deletion."""
    service = get_content_service()
    queued = await service.delete_item(item_id, user_id)
    logger.info(f"User {user_id} deleted item {item_id} ({len(queued)} asset(s) queued)")
    return DeleteContentResponse(item_id=item_id, queued_asset_keys=queued)


@router.put(
    "/content/{item_id}/cover",
    response_model=ContentItemResponse,
    summary="Set or clear the cover image",
)
async def update_cover(
    item_id: str,
    request: CoverImageRequest,
    user_id: str = Depends(get_current_user),
) -> ContentItemResponse:
    service = get_content_service()
    item = await service.update_cover_image(item_id, user_id, request.cover_image)
    return ContentItemResponse(item=item)


@router.put(
    "/content/{item_id}/tags/{tag_id}",
    response_model=ContentItemResponse,
    summary="Tag an item",
)
async def add_tag(
    item_id: str,
    tag_id: str,
    user_id: str = Depends(get_current_user),
) -> ContentItemResponse:
    service = get_content_service()
    return ContentItemResponse(item=await service.add_tag(item_id, user_id, tag_id))


@router.delete(
    "/content/{item_id}/tags/{tag_id}",
    response_model=ContentItemResponse,
    summary="Untag an item",
)
async def remove_tag(
    item_id: str,
    tag_id: str,
    user_id: str = Depends(get_current_user),
) -> ContentItemResponse:
    service = get_content_service()
    return ContentItemResponse(item=await service.remove_tag(item_id, user_id, tag_id))
