"""
Backend server for the Folio API.
Serves versioned posts and projects for a personal portfolio site.

This is the main entry point that assembles the modular components
from the app package.
"""

import logging
import re
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError as SettingsValidationError
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

# Configure structured logging FIRST, before other imports that use logging
from src.utils.logging import setup_logging

logger = setup_logging(service_name="folio-api")

from src.config import Settings, get_settings

# =============================================================================
# Configuration
# =============================================================================

try:
    settings: Settings = get_settings()
    logger.info("Configuration loaded", extra={"config": settings.get_config_summary()})
except SettingsValidationError as e:
    logger.critical(f"Configuration validation failed: {e}")
    logger.critical("Application cannot start due to configuration errors.")
    sys.exit(1)

# =============================================================================
# Import middleware and routes after config is validated
# =============================================================================

from app import __version__
from app.error_handlers import register_exception_handlers
from app.middleware import RequestLoggingMiddleware
from app.routes import (
    assets_router,
    content_router,
    health_router,
    public_router,
    tags_router,
    versions_router,
)
from src.content import get_content_service

# =============================================================================
# Sentry Error Tracking Configuration
# =============================================================================

SENSITIVE_BREADCRUMB_KEYS = [
    "password", "secret", "token", "authorization", "bearer",
    "credential", "x-gc-secret", "signature",
]


def filter_sensitive_breadcrumbs(crumb, hint):
    """
    Filter sensitive data from Sentry breadcrumbs.

    Masks auth headers, signed-URL query parameters and log messages that
    mention credentials.
    """
    if crumb.get("category") == "http":
        data = crumb.get("data")
        if isinstance(data, dict):
            headers = data.get("headers")
            if isinstance(headers, dict):
                for key in list(headers.keys()):
                    if any(s in key.lower() for s in SENSITIVE_BREADCRUMB_KEYS):
                        headers[key] = "[FILTERED]"
            url = data.get("url")
            if isinstance(url, str) and "?" in url:
                # Presigned URLs carry their credentials in the query string
                data["url"] = re.sub(r"\?.*$", "?[FILTERED]", url)

    if crumb.get("category") in ("console", "log") and "message" in crumb:
        message = str(crumb["message"]).lower()
        if any(key in message for key in SENSITIVE_BREADCRUMB_KEYS):
            crumb["message"] = "[FILTERED - may contain sensitive data]"

    return crumb


if settings.is_sentry_configured:
    sentry_settings = settings.sentry
    sentry_sdk.init(
        dsn=sentry_settings.sentry_dsn,
        environment=sentry_settings.sentry_environment,
        sample_rate=1.0,
        traces_sample_rate=sentry_settings.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        before_breadcrumb=filter_sensitive_breadcrumbs,
        send_default_pii=False,
        attach_stacktrace=True,
        server_name=sentry_settings.server_name,
        release=sentry_settings.sentry_release,
    )
    logger.info(f"Sentry initialized for environment: {sentry_settings.sentry_environment}")
else:
    logger.info("Sentry DSN not configured, error tracking disabled")


# =============================================================================
# Initialize FastAPI App
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Cancel pending debounced saves on shutdown."""
    yield
    try:
        await get_content_service().shutdown()
    except Exception as e:
        logger.warning(f"Failed to cancel pending saves: {e}")


app = FastAPI(
    title="Folio API",
    description="""
## Portfolio Content API

Versioned posts and projects with a draft/publish workflow.

### Key Features

- **Drafts and snapshots**: editors autosave into a draft; readers only ever see the published snapshot
- **Smart versioning**: small edits update the latest version in place, larger ones create a new version
- **Version history**: list, compare and restore earlier versions
- **Asset tracking**: uploaded images are reference-counted per version and garbage-collected when unused

### Authentication

Admin endpoints require a Supabase Auth access token via `Authorization: Bearer <token>`.
The garbage-collection endpoint requires the `X-GC-Secret` header.
""",
    version=__version__,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "health", "description": "Health checks and system status"},
        {"name": "public", "description": "Published posts and projects for readers"},
        {"name": "content", "description": "Create and manage posts and projects"},
        {"name": "versions", "description": "Autosave, version history and publishing"},
        {"name": "tags", "description": "Tag management"},
        {"name": "assets", "description": "Image uploads and asset garbage collection"},
    ],
)

# =============================================================================
# Exception Handlers
# =============================================================================

register_exception_handlers(app)
logger.info("Centralized exception handlers registered")

# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Authorization",
        "Content-Type",
        "X-Request-ID",
        "X-Correlation-ID",
        "Accept",
        "Origin",
    ],
    expose_headers=[
        "X-Request-ID",
        "X-Correlation-ID",
        "X-Response-Time",
    ],
    max_age=600,
)

# Added last so it wraps everything else
if settings.logging.request_logging_enabled:
    app.add_middleware(RequestLoggingMiddleware)
    logger.info("Request logging middleware enabled")

# =============================================================================
# Include Routers
# =============================================================================

app.include_router(health_router)
app.include_router(public_router)
app.include_router(content_router)
app.include_router(versions_router)
app.include_router(tags_router)
app.include_router(assets_router)


@app.get("/", include_in_schema=False)
async def root() -> Dict[str, Any]:
    return {"name": "Folio API", "version": __version__, "docs": "/docs"}


if __name__ == "__main__":
    uvicorn.run("server:app", host="0.0.0.0", port=8000, reload=not settings.is_production)
