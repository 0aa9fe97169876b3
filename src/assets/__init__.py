"""Uploaded asset tracking, object storage and garbage collection."""

from .gc import AssetGarbageCollector, get_asset_gc
from .storage import BaseObjectStorage, get_object_storage
from .tracker import AssetReferenceTracker, item_asset_prefix

__all__ = [
    "AssetGarbageCollector",
    "get_asset_gc",
    "BaseObjectStorage",
    "get_object_storage",
    "AssetReferenceTracker",
    "item_asset_prefix",
]
