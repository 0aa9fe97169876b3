"""
Type definitions for the Folio API.
"""

from .assets import (
    Asset,
    AssetDeletionJob,
    AssetRef,
    DeletionStatus,
    GCResult,
    UsageType,
)
from .content import (
    AuthorProfile,
    ContentCollection,
    ContentItem,
    ContentStatus,
    ContentSummary,
    ContentType,
    ContentView,
    Tag,
)
from .version import (
    ContentVersion,
    ContentVersionWithCreator,
    DiffLine,
    DiffLineType,
    DiffResult,
    DraftInput,
    PublishResult,
    SaveAction,
    SaveStatus,
    SmartSaveResult,
    SnapshotStatus,
)

__all__ = [
    # Assets
    "Asset",
    "AssetDeletionJob",
    "AssetRef",
    "DeletionStatus",
    "GCResult",
    "UsageType",
    # Content
    "AuthorProfile",
    "ContentCollection",
    "ContentItem",
    "ContentStatus",
    "ContentSummary",
    "ContentType",
    "ContentView",
    "Tag",
    # Versions
    "ContentVersion",
    "ContentVersionWithCreator",
    "DiffLine",
    "DiffLineType",
    "DiffResult",
    "DraftInput",
    "PublishResult",
    "SaveAction",
    "SaveStatus",
    "SmartSaveResult",
    "SnapshotStatus",
]
