"""
Health check endpoints for monitoring and load balancers.
"""

import logging
from datetime import datetime
from typing import Any, Dict

import sentry_sdk
from fastapi import APIRouter

from src.assets.storage import S3ObjectStorage, get_object_storage
from src.config import get_settings
from src.content.repository import InMemoryContentRepository, get_content_repository
from src.types.content import ContentType

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


async def get_database_status() -> Dict[str, Any]:
    """
    Check the content repository.

    The in-memory repository reports as unconfigured; Supabase is probed
    with a one-row listing.
    """
    repository = get_content_repository()
    if isinstance(repository, InMemoryContentRepository):
        return {
            "configured": False,
            "connected": True,
            "backend": "memory",
        }

    try:
        start_time = datetime.now()
        await repository.list_items(ContentType.POST, published_only=True, limit=1)
        latency_ms = (datetime.now() - start_time).total_seconds() * 1000
        return {
            "configured": True,
            "connected": True,
            "backend": "supabase",
            "latency_ms": round(latency_ms, 2),
        }
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return {
            "configured": True,
            "connected": False,
            "backend": "supabase",
            "error": str(e)[:100],
        }


def get_storage_status() -> Dict[str, Any]:
    storage = get_object_storage()
    settings = get_settings()
    return {
        "configured": isinstance(storage, S3ObjectStorage),
        "bucket": settings.storage.s3_bucket,
        "cdn_url": settings.storage.s3_cdn_url,
        "gc_enabled": bool(settings.asset_gc.asset_gc_secret),
    }


def get_sentry_status() -> Dict[str, Any]:
    """
    Get the current Sentry configuration status.

    Returns information about whether Sentry is configured and active.
    """
    sentry = get_settings().sentry
    try:
        client = sentry_sdk.get_client()
        return {
            "configured": sentry.is_configured,
            "active": client.is_active() if sentry.is_configured else False,
            "environment": sentry.sentry_environment if sentry.is_configured else None,
        }
    except Exception as e:
        return {
            "configured": False,
            "active": False,
            "environment": None,
            "error": str(e),
        }


def _service_state(status: Dict[str, Any], up_key: str) -> str:
    if not status.get("configured"):
        return "unconfigured"
    return "up" if status.get(up_key) else "down"


@router.get(
    "/health",
    summary="System health check",
    description="""
Health check endpoint for monitoring and load balancers.

Reports the content database, object storage and Sentry status.

**Authentication**: Not required.
    """,
)
async def health_check() -> Dict[str, Any]:
    """
    Overall system health.

    The service is degraded only when a configured database cannot be reached.
    """
    settings = get_settings()
    db_status = await get_database_status()
    storage_status = get_storage_status()
    sentry_status = get_sentry_status()

    is_healthy = db_status.get("connected", False)

    return {
        "status": "healthy" if is_healthy else "degraded",
        "timestamp": datetime.now().isoformat(),
        "version": settings.sentry.sentry_release,
        "environment": settings.security.environment,
        "services": {
            "database": {
                "status": _service_state(db_status, "connected"),
                "backend": db_status.get("backend"),
                "latency_ms": db_status.get("latency_ms"),
            },
            "storage": {
                "status": "up" if storage_status.get("configured") else "unconfigured",
                "gc_enabled": storage_status.get("gc_enabled"),
            },
            "sentry": {
                "status": _service_state(sentry_status, "active"),
            },
        },
    }


@router.get("/health/db")
async def database_health() -> Dict[str, Any]:
    """Detailed database health check."""
    return {
        "timestamp": datetime.now().isoformat(),
        "database": await get_database_status(),
    }


@router.get("/health/storage")
async def storage_health() -> Dict[str, Any]:
    return {
        "timestamp": datetime.now().isoformat(),
        "storage": get_storage_status(),
    }


@router.get("/health/sentry")
async def sentry_health() -> Dict[str, Any]:
    """
    Detailed Sentry configuration status.
    """
    sentry = get_settings().sentry
    status = get_sentry_status()
    status["traces_sample_rate"] = sentry.sentry_traces_sample_rate
    status["release"] = sentry.sentry_release
    status["server_name"] = sentry.server_name

    return {
        "timestamp": datetime.now().isoformat(),
        "sentry": status,
    }
