"""
Admin tag endpoints.

Tags are shared across posts and projects; the slug is derived from the name
and must be unique.
"""

import logging

from fastapi import APIRouter, Depends, status

from src.content import get_content_service
from src.types.content import TagListResponse, TagRequest, TagResponse

from ..auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/tags", tags=["tags"])


@router.get("", response_model=TagListResponse, summary="List tags")
async def list_tags(user_id: str = Depends(get_current_user)) -> TagListResponse:
    service = get_content_service()
    return TagListResponse(tags=await service.tags.list_tags())


@router.post(
    "",
    response_model=TagResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a tag",
    responses={409: {"description": "A tag with the same slug exists"}},
)
async def create_tag(
    request: TagRequest,
    user_id: str = Depends(get_current_user),
) -> TagResponse:
    service = get_content_service()
    return TagResponse(tag=await service.tags.create_tag(request.name))


@router.patch("/{tag_id}", response_model=TagResponse, summary="Rename a tag")
async def rename_tag(
    tag_id: str,
    request: TagRequest,
    user_id: str = Depends(get_current_user),
) -> TagResponse:
    service = get_content_service()
    return TagResponse(tag=await service.tags.rename_tag(tag_id, request.name))


@router.delete(
    "/{tag_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a tag",
    description="Removes the tag and its links to items.",
)
async def delete_tag(
    tag_id: str,
    user_id: str = Depends(get_current_user),
) -> None:
    service = get_content_service()
    await service.tags.delete_tag(tag_id)
