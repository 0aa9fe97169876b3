"""
Content Version History API endpoints.

Provides endpoints for:
- Autosaving the draft body
- Similarity-gated manual saves
- Listing, reading and restoring versions
- Comparing versions and detecting unpublished draft changes
- Publishing and unpublishing

Authorization:
- All endpoints require a signed-in user who owns the item
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.content import get_content_service
from src.types.content import ContentItemResponse
from src.types.version import (
    AutosaveRequest,
    AutosaveResponse,
    DraftChangesResponse,
    PublishRequest,
    PublishResponse,
    SaveStatusResponse,
    SmartSaveRequest,
    SmartSaveResponse,
    VersionDetailResponse,
    VersionDiffResponse,
    VersionListResponse,
)

from ..auth import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/content", tags=["versions"])


@router.put(
    "/{item_id}/draft",
    response_model=AutosaveResponse,
    summary="Autosave the draft",
    description="""
Write the editor body into the draft version.

A draft that is currently the published snapshot is forked into a new
version first, so readers never see unpublished edits. A similarity-gated
version snapshot is scheduled afterwards unless `schedule_snapshot` is false.
    """,
)
async def autosave_draft(
    item_id: str,
    request: AutosaveRequest,
    user_id: str = Depends(get_current_user),
) -> AutosaveResponse:
    service = get_content_service()
    version = await service.save_draft(
        item_id,
        user_id,
        request.body_json,
        schedule_snapshot=request.schedule_snapshot,
    )
    return AutosaveResponse(
        version_id=version.id,
        version_number=version.version_number,
        save_status=service.save_status(item_id),
    )


@router.post(
    "/{item_id}/versions",
    response_model=SmartSaveResponse,
    summary="Save a version",
    description="Update the latest version in place for minor edits, otherwise create a new version.",
)
async def save_version(
    item_id: str,
    request: SmartSaveRequest,
    user_id: str = Depends(get_current_user),
) -> SmartSaveResponse:
    """
    Manual save.

    Cancels any pending background save for the item before saving.
    """
    service = get_content_service()
    result = await service.manual_save(
        item_id,
        user_id,
        draft=request.draft,
        description=request.change_description,
        force_new_version=request.force_new_version,
    )
    logger.info(f"Version {result.version_number} of item {item_id} {result.action.value}")
    return SmartSaveResponse(result=result, save_status=service.save_status(item_id))


@router.get(
    "/{item_id}/versions",
    response_model=VersionListResponse,
    summary="List content versions",
)
async def list_versions(
    item_id: str,
    user_id: str = Depends(get_current_user),
) -> VersionListResponse:
    """Version history, newest first, with creator names."""
    service = get_content_service()
    return await service.list_versions(item_id, user_id)


@router.get(
    "/{item_id}/versions/compare",
    response_model=VersionDiffResponse,
    summary="Compare two versions",
)
async def compare_versions(
    item_id: str,
    v1: int = Query(..., ge=1, description="First version number"),
    v2: int = Query(..., ge=1, description="Second version number"),
    user_id: str = Depends(get_current_user),
) -> VersionDiffResponse:
    """Line diff between two versions, the older one on the left."""
    service = get_content_service()
    return await service.diff_versions(item_id, user_id, v1, v2)


@router.get(
    "/{item_id}/versions/{version_number}",
    response_model=VersionDetailResponse,
    summary="Get a specific version",
)
async def get_version(
    item_id: str,
    version_number: int,
    user_id: str = Depends(get_current_user),
) -> VersionDetailResponse:
    service = get_content_service()
    version = await service.get_version(item_id, user_id, version_number)
    return VersionDetailResponse(version=version)


@router.post(
    "/{item_id}/versions/{version_number}/restore",
    response_model=VersionDetailResponse,
    summary="Restore a version",
    description="Copy an earlier version into a new draft version. The published snapshot is unchanged.",
)
async def restore_version(
    item_id: str,
    version_number: int,
    user_id: str = Depends(get_current_user),
) -> VersionDetailResponse:
    service = get_content_service()
    service.cancel_pending_saves(item_id)
    version = await service.restore_version(item_id, user_id, version_number)
    logger.info(f"Restored item {item_id} to version {version_number} as {version.version_number}")
    return VersionDetailResponse(version=version)


@router.post(
    "/{item_id}/publish",
    response_model=PublishResponse,
    summary="Publish",
)
async def publish(
    item_id: str,
    request: Optional[PublishRequest] = None,
    user_id: str = Depends(get_current_user),
) -> PublishResponse:
    """Save the draft and make that version the public snapshot."""
    service = get_content_service()
    service.cancel_pending_saves(item_id)
    result = await service.publish(item_id, user_id, draft=request.draft if request else None)
    return PublishResponse(result=result)


@router.post(
    "/{item_id}/unpublish",
    response_model=ContentItemResponse,
    summary="Unpublish",
)
async def unpublish(
    item_id: str,
    user_id: str = Depends(get_current_user),
) -> ContentItemResponse:
    service = get_content_service()
    return ContentItemResponse(item=await service.unpublish(item_id, user_id))


@router.get(
    "/{item_id}/draft-changes",
    response_model=DraftChangesResponse,
    summary="Unpublished draft changes",
)
async def draft_changes(
    item_id: str,
    user_id: str = Depends(get_current_user),
) -> DraftChangesResponse:
    """Whether the draft differs from the published snapshot, with the diff."""
    service = get_content_service()
    return await service.diff_draft_against_published(item_id, user_id)


@router.get(
    "/{item_id}/save-status",
    response_model=SaveStatusResponse,
    summary="Save indicator",
)
async def save_status(
    item_id: str,
    user_id: str = Depends(get_current_user),
) -> SaveStatusResponse:
    service = get_content_service()
    await service.get_owned_item(item_id, user_id)
    return SaveStatusResponse(item_id=item_id, save_status=service.save_status(item_id))
