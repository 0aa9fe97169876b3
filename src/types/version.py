"""
Pydantic models for content version history.

This module defines the data models for:
- Version snapshots and their creators
- Save results (in-place update vs new version)
- Line diffs between two renderings
- Request/response bodies for the versioning endpoints
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SnapshotStatus(str, Enum):
    """
    Informational lifecycle label stored on each version.

    The item's ``published_version_id`` pointer is authoritative; this label
    only records what the version was used for.
    """
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class SaveAction(str, Enum):
    """Outcome of a smart save."""
    CREATED = "created"
    UPDATED = "updated"


class SaveStatus(str, Enum):
    """Tri-state save indicator (plus idle) reported to the editor."""
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


class ContentVersion(BaseModel):
    """
    An immutable-once-published snapshot of a content item.
    """

    id: str = Field(
        ...,
        description="Unique identifier for this version (UUID)"
    )
    content_item_id: str = Field(
        ...,
        description="ID of the owning content item"
    )
    version_number: int = Field(
        ...,
        ge=1,
        description="Sequential version number starting from 1"
    )
    title: str = Field(
        default="",
        description="Title at this version"
    )
    summary: Optional[str] = Field(
        default=None,
        description="Summary/excerpt at this version"
    )
    body_json: str = Field(
        default="[]",
        description="Serialized block tree"
    )
    snapshot_status: SnapshotStatus = Field(
        default=SnapshotStatus.DRAFT,
        description="Informational lifecycle label"
    )
    created_by: Optional[str] = Field(
        default=None,
        description="User ID who created the version"
    )
    change_description: Optional[str] = Field(
        default=None,
        description="Human-readable description of the change"
    )
    created_at: datetime = Field(
        ...,
        description="When the version was created"
    )


class VersionCreator(BaseModel):
    """Display information for the author of a version."""

    id: str
    display_name: Optional[str] = None


class ContentVersionWithCreator(ContentVersion):
    """Version row as returned by history listings."""

    creator: Optional[VersionCreator] = Field(
        default=None,
        description="Resolved creator profile (null if unknown)"
    )


class VersionSnapshotUpdate(BaseModel):
    """Fields that may be rewritten on an unpublished version."""

    title: Optional[str] = None
    summary: Optional[str] = None
    body_json: Optional[str] = None
    change_description: Optional[str] = None


class DraftInput(BaseModel):
    """
    Live editor state supplied with a save.

    When omitted, the stored current version stands in for the draft.
    """

    title: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Draft title"
    )
    summary: Optional[str] = Field(
        default=None,
        description="Draft summary"
    )
    body_json: Optional[str] = Field(
        default=None,
        description="Draft body as serialized block tree"
    )


class SmartSaveResult(BaseModel):
    """Result of a similarity-gated save."""

    version_id: str
    version_number: int
    action: SaveAction
    similarity: Optional[float] = Field(
        default=None,
        description="Similarity between latest version and draft (null when no prior version)"
    )


class PublishResult(BaseModel):
    """Result of publishing an item."""

    item_id: str
    version_id: str
    version_number: int
    published_at: datetime


# =============================================================================
# Diff models
# =============================================================================


class DiffLineType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    UNCHANGED = "unchanged"


class DiffLine(BaseModel):
    type: DiffLineType
    content: str


class DiffResult(BaseModel):
    """
    Line diff between two renderings of a document.

    ``added``/``removed`` count lines of each kind. An empty ``lines`` list
    or zero counts means the two sides are identical.
    """

    lines: List[DiffLine] = Field(default_factory=list)
    added: int = 0
    removed: int = 0

    @property
    def has_changes(self) -> bool:
        return self.added > 0 or self.removed > 0

    def proportion_bar(self, width: int = 10) -> str:
        """
        Render the added/removed ratio as a bar of ``+`` and ``-`` cells.

        Returns an empty string when nothing changed.
        """
        total = self.added + self.removed
        if total == 0 or width <= 0:
            return ""
        plus = round(width * self.added / total)
        if self.added and plus == 0:
            plus = 1
        if self.removed and plus == width:
            plus = width - 1
        return "+" * plus + "-" * (width - plus)


# =============================================================================
# Request / Response models
# =============================================================================


class AutosaveRequest(BaseModel):
    """Request body for a content autosave."""

    body_json: str = Field(
        ...,
        description="Serialized block tree"
    )
    schedule_snapshot: bool = Field(
        default=True,
        description="Schedule a similarity-gated version snapshot after the write"
    )


class AutosaveResponse(BaseModel):
    success: bool = True
    version_id: str
    version_number: int
    save_status: SaveStatus


class SmartSaveRequest(BaseModel):
    """Request body for an explicit (manual) save."""

    draft: Optional[DraftInput] = Field(
        default=None,
        description="Live editor state; defaults to the stored draft"
    )
    change_description: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Description of the change"
    )
    force_new_version: bool = Field(
        default=False,
        description="Always cut a new version regardless of similarity"
    )


class PublishRequest(BaseModel):
    draft: Optional[DraftInput] = None


class VersionListResponse(BaseModel):
    """Response for listing versions of an item."""

    success: bool = True
    item_id: str
    versions: List[ContentVersionWithCreator]
    total: int
    current_version_id: Optional[str] = None
    published_version_id: Optional[str] = None


class VersionDiffResponse(BaseModel):
    """Diff between two versions, oldest on the left."""

    success: bool = True
    item_id: str
    from_version: int
    to_version: int
    lines: List[DiffLine]
    added: int
    removed: int
    has_changes: bool
    bar: str


class DraftChangesResponse(BaseModel):
    success: bool = True
    item_id: str
    has_draft_changes: bool
    diff: Optional[VersionDiffResponse] = None


class SaveStatusResponse(BaseModel):
    item_id: str
    save_status: SaveStatus


class VersionDetailResponse(BaseModel):
    success: bool = True
    version: ContentVersion


class SmartSaveResponse(BaseModel):
    success: bool = True
    result: SmartSaveResult
    save_status: SaveStatus


class PublishResponse(BaseModel):
    success: bool = True
    result: PublishResult
