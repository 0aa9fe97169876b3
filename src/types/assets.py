"""
Pydantic models for uploaded assets, their references and the deletion queue.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UsageType(str, Enum):
    """How a version uses an asset."""
    EMBEDDED = "embedded"
    COVER = "cover"


class DeletionStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    FAILED = "failed"


class Asset(BaseModel):
    """An object in storage, keyed by its object key."""

    id: str
    owner_id: Optional[str] = None
    object_key: str = Field(..., description="Storage key, unique")
    public_url: str
    asset_type: str = Field(default="image")
    storage_provider: str = Field(default="s3")
    mime_type: Optional[str] = None
    size_bytes: Optional[int] = Field(default=None, ge=0)
    created_at: datetime


class AssetRef(BaseModel):
    """Weak reference from a version to an asset."""

    content_version_id: str
    asset_id: str
    usage_type: UsageType


class AssetDeletionJob(BaseModel):
    """Deletion queue row; at most one per asset."""

    id: str
    asset_id: str
    object_key: str
    status: DeletionStatus = DeletionStatus.PENDING
    attempt_count: int = Field(default=0, ge=0)
    next_attempt_at: datetime
    last_error: Optional[str] = None
    locked_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class GCResult(BaseModel):
    """Counters for one garbage-collection batch."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    processed: int = 0
    deleted: int = 0
    skipped_referenced: int = Field(default=0, serialization_alias="skippedReferenced")
    failed: int = 0
    batch_size: int = Field(default=0, serialization_alias="batchSize")


# =============================================================================
# Request / Response models
# =============================================================================


class GCRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    batch_size: Optional[int] = Field(default=None, alias="batchSize")


class PresignedUrlRequest(BaseModel):
    item_id: str = Field(..., min_length=1)
    filename: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1, max_length=100)


class PresignedUrlResponse(BaseModel):
    success: bool = True
    url: str = Field(..., description="Signed upload URL (PUT)")
    file_url: str = Field(..., description="Public URL of the object once uploaded")
    object_key: str


class RecordImageRequest(BaseModel):
    item_id: str = Field(..., min_length=1)
    url: str = Field(..., min_length=1)
    object_key: Optional[str] = Field(
        default=None,
        description="Storage key returned by the presigned-url call; derived from the URL when omitted"
    )
    usage_type: UsageType = UsageType.EMBEDDED
    content_type: Optional[str] = None
    size_bytes: Optional[int] = Field(default=None, ge=0)


class RecordImageResponse(BaseModel):
    success: bool = True
    asset: Asset
    version_id: str
    usage_type: UsageType
