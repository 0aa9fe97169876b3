"""
FastAPI dependencies for the Folio API.

Usage:
    from app.dependencies import require_gc_secret
"""

import hmac
import logging
from typing import Optional

from fastapi import Header

from src.config import get_settings

from ..exceptions import AuthenticationError

logger = logging.getLogger(__name__)

GC_SECRET_HEADER = "X-GC-Secret"


async def require_gc_secret(
    x_gc_secret: Optional[str] = Header(default=None, alias=GC_SECRET_HEADER),
) -> None:
    """
    Guard the garbage-collection endpoint with a shared secret.

    Raises:
        AuthenticationError: If the secret is not configured, missing or wrong.
    """
    configured = get_settings().asset_gc.asset_gc_secret
    if configured is None:
        logger.error("Asset GC endpoint called but ASSET_GC_SECRET is not set")
        raise AuthenticationError("Asset garbage collection is disabled")

    if not x_gc_secret or not hmac.compare_digest(
        x_gc_secret.encode(), configured.get_secret_value().encode()
    ):
        logger.warning("Rejected asset GC request with invalid credentials")
        raise AuthenticationError()


__all__ = [
    "GC_SECRET_HEADER",
    "require_gc_secret",
]
