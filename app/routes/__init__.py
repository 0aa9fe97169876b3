"""API routes for the Folio API."""

from .assets import router as assets_router
from .content import router as content_router
from .health import router as health_router
from .public import router as public_router
from .tags import router as tags_router
from .versions import router as versions_router

__all__ = [
    "assets_router",
    "content_router",
    "health_router",
    "public_router",
    "tags_router",
    "versions_router",
]
