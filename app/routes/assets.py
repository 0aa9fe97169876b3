"""
Asset upload and garbage-collection endpoints.

Uploads are two-step: the editor asks for a signed upload URL, PUTs the file
straight to object storage, then records the image against the item so the
reference tracker knows which version uses it. Unreferenced uploads are
removed later by the garbage collector, which a scheduler triggers through
the secret-protected ``/gc`` endpoint.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends

from src.assets import get_asset_gc, get_object_storage, item_asset_prefix
from src.assets.storage import safe_filename
from src.config import get_settings
from src.content import get_content_service
from src.types.assets import (
    GCRequest,
    GCResult,
    PresignedUrlRequest,
    PresignedUrlResponse,
    RecordImageRequest,
    RecordImageResponse,
)

from ..auth import get_current_user
from ..dependencies import require_gc_secret
from ..exceptions import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/assets", tags=["assets"])


@router.post(
    "/presigned-url",
    response_model=PresignedUrlResponse,
    summary="Get a signed upload URL",
)
async def create_presigned_url(
    request: PresignedUrlRequest,
    user_id: str = Depends(get_current_user),
) -> PresignedUrlResponse:
    """
    Sign an upload into the item's namespace.

    Keys have the form ``assets/<item_id>/<random>-<filename>``.
    """
    if not request.content_type.startswith("image/"):
        raise ValidationError(
            "Only image uploads are supported",
            field="content_type",
            value=request.content_type,
        )

    service = get_content_service()
    item = await service.get_owned_item(request.item_id, user_id)

    storage = get_object_storage()
    key = f"{item_asset_prefix(item.id)}{uuid.uuid4().hex}-{safe_filename(request.filename)}"
    url = await storage.generate_upload_url(
        key,
        request.content_type,
        expires_in=get_settings().storage.s3_presigned_url_expiry,
    )
    logger.info(f"Signed upload {key} for user {user_id}")
    return PresignedUrlResponse(url=url, file_url=storage.public_url(key), object_key=key)


@router.post(
    "/record-image",
    response_model=RecordImageResponse,
    summary="Record an uploaded image",
)
async def record_image(
    request: RecordImageRequest,
    user_id: str = Depends(get_current_user),
) -> RecordImageResponse:
    """Attach an uploaded image to the item's draft version."""
    service = get_content_service()
    asset, version_id = await service.record_image(
        request.item_id,
        user_id,
        request.url,
        usage_type=request.usage_type,
        object_key=request.object_key,
        mime_type=request.content_type,
        size_bytes=request.size_bytes,
    )
    return RecordImageResponse(asset=asset, version_id=version_id, usage_type=request.usage_type)


@router.post(
    "/gc",
    response_model=GCResult,
    summary="Run one garbage-collection batch",
    description="""
Process due asset deletion jobs.

**Authentication**: `X-GC-Secret` header matching `ASSET_GC_SECRET`.
    """,
)
async def run_gc(
    request: Optional[GCRequest] = None,
    _: None = Depends(require_gc_secret),
) -> GCResult:
    collector = get_asset_gc()
    return await collector.run_batch(request.batch_size if request else None)
