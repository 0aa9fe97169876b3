"""
FastAPI exception handlers for the Folio API.

This module provides centralized exception handling that:
- Maps service-layer errors (``src.errors``) to API exceptions
- Handles Pydantic validation errors with clean messages
- Reports unexpected exceptions to Sentry
- Prevents sensitive information leakage

All error responses follow the format:
{
    "success": false,
    "error": "Human-readable message",
    "error_code": "MACHINE_READABLE_CODE",
    "details": {}  # Optional additional context
}
"""

import logging
import os
import re
import uuid
from typing import Any, Dict, List, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from src import errors as domain

from .exceptions import (
    AuthorizationError,
    ConflictError,
    DatabaseError,
    ErrorCode,
    FolioException,
    ResourceNotFoundError,
    StorageServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

ENVIRONMENT = os.environ.get("ENVIRONMENT", "development")
IS_PRODUCTION = ENVIRONMENT.lower() == "production"

SENSITIVE_PATTERNS = [
    r"api[_-]?key",
    r"secret",
    r"password",
    r"token",
    r"credential",
    r"private",
    r"bearer",
    r"session",
    r"cookie",
    r"signature",
    # Connection strings
    r"postgres://",
    r"postgresql://",
    # File paths
    r"/home/",
    r"/Users/",
    r"/var/",
    r"/etc/",
    # Environment variable references
    r"\$\{?\w+\}?",
]

SENSITIVE_REGEX = re.compile(
    "|".join(SENSITIVE_PATTERNS),
    re.IGNORECASE
)

SAFE_DETAIL_KEYS = frozenset({
    "field", "value", "resource_type", "resource_id", "service",
    "errors", "error_reference", "sentry_event_id",
})


def sanitize_error_message(message: str) -> str:
    """
    Remove potentially sensitive information from error messages.

    Returns a generic message when anything credential-like is present.
    """
    if not message:
        return message

    if SENSITIVE_REGEX.search(message):
        return "An error occurred while processing your request"

    message = re.sub(r'[/\\][\w./\\-]+\.\w+', '[path]', message)
    message = re.sub(r'\b\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}\b', '[ip]', message)

    if len(message) > 500:
        message = message[:500] + "..."

    return message


def sanitize_details(details: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only whitelisted detail keys with primitive (or error-list) values."""
    if not details:
        return {}

    sanitized: Dict[str, Any] = {}
    for key, value in details.items():
        if key not in SAFE_DETAIL_KEYS:
            continue

        if isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        elif isinstance(value, (int, float, bool)):
            sanitized[key] = value
        elif isinstance(value, list):
            sanitized[key] = [
                v for v in value
                if isinstance(v, (str, int, float, bool, dict))
            ][:10]

    return sanitized


def format_pydantic_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Format Pydantic validation errors as ``[{field, message}]``."""
    formatted = []
    for error in errors:
        loc = error.get("loc", [])
        field_parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
        field = ".".join(field_parts) if field_parts else "request"

        error_type = error.get("type", "")
        msg = error.get("msg", "Invalid value")

        if error_type == "missing":
            msg = f"Field '{field}' is required"
        elif error_type == "string_type":
            msg = f"Field '{field}' must be a string"
        elif error_type in ("int_type", "int_parsing"):
            msg = f"Field '{field}' must be an integer"
        elif error_type in ("bool_type", "bool_parsing"):
            msg = f"Field '{field}' must be a boolean"
        elif "enum" in error_type.lower():
            msg = f"Field '{field}' has an invalid value"
        else:
            msg = sanitize_error_message(msg)

        formatted.append({
            "field": field,
            "message": msg,
        })

    return formatted[:10]


def create_error_response(
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Create a standardized error response."""
    content: Dict[str, Any] = {
        "success": False,
        "error": sanitize_error_message(error),
        "error_code": error_code,
    }

    if details:
        sanitized_details = sanitize_details(details)
        if sanitized_details:
            content["details"] = sanitized_details

    return JSONResponse(
        status_code=status_code,
        content=content,
        headers=headers,
    )


def report_to_sentry(
    exc: Exception,
    request: Optional[Request] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """
    Report an exception to Sentry with request context.

    Returns:
        Sentry event ID if reported, None otherwise.
    """
    try:
        client = sentry_sdk.get_client()
        if not client.is_active():
            return None

        with sentry_sdk.new_scope() as scope:
            if request:
                scope.set_context("request", {
                    "method": request.method,
                    "path": request.url.path,
                })

                user_id = getattr(request.state, "user_id", None)
                if user_id:
                    scope.set_user({"id": user_id})

                request_id = request.headers.get("X-Request-ID")
                if request_id:
                    scope.set_tag("request_id", request_id)

            if extra_context:
                scope.set_context("extra", extra_context)

            return sentry_sdk.capture_exception(exc)

    except Exception as e:
        logger.warning(f"Failed to report exception to Sentry: {e}")
        return None


# =============================================================================
# Service error mapping
# =============================================================================

def to_api_exception(exc: domain.ContentError) -> FolioException:
    """Translate a service-layer error into the API exception hierarchy."""
    if isinstance(exc, domain.NotPublishedError):
        return ResourceNotFoundError(
            exc.message,
            resource_type=exc.resource_type,
            error_code=ErrorCode.NOT_YET_PUBLISHED,
        )
    if isinstance(exc, domain.NotFoundError):
        error_code = {
            "content_item": ErrorCode.CONTENT_NOT_FOUND,
            "content_version": ErrorCode.VERSION_NOT_FOUND,
        }.get(exc.resource_type or "", ErrorCode.RESOURCE_NOT_FOUND)
        return ResourceNotFoundError(
            exc.message,
            resource_type=exc.resource_type,
            resource_id=exc.resource_id,
            error_code=error_code,
        )
    if isinstance(exc, domain.UnauthorizedError):
        return AuthorizationError(exc.message)
    if isinstance(exc, domain.ConflictError):
        error_code = (
            ErrorCode.VERSION_CONFLICT
            if exc.resource_type == "content_version"
            else ErrorCode.RESOURCE_CONFLICT
        )
        return ConflictError(exc.message, resource_type=exc.resource_type, error_code=error_code)
    if isinstance(exc, domain.DatastoreError):
        return DatabaseError(internal_message=exc.message, original_error=exc.__cause__)
    if isinstance(exc, domain.StorageError):
        return StorageServiceError(internal_message=exc.message, original_error=exc.__cause__)
    if isinstance(exc, domain.ParseError):
        return ValidationError(exc.message, error_code=ErrorCode.INVALID_FORMAT)
    if isinstance(exc, domain.InvalidInputError):
        return ValidationError(exc.message, error_code=ErrorCode.INVALID_INPUT)
    return FolioException(internal_message=exc.message)


# =============================================================================
# Exception Handlers
# =============================================================================

async def folio_exception_handler(
    request: Request,
    exc: FolioException,
) -> JSONResponse:
    """Handle FolioException and subclasses."""
    log_message = f"{exc.__class__.__name__}: {exc.message}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"

    if exc.status_code >= 500:
        logger.error(log_message)
        report_to_sentry(exc, request)
    else:
        logger.warning(log_message)

    return create_error_response(
        status_code=exc.status_code,
        error=exc.message,
        error_code=exc.error_code.value,
        details=exc.details,
    )


async def content_error_handler(
    request: Request,
    exc: domain.ContentError,
) -> JSONResponse:
    """Handle service-layer errors raised by the content and asset modules."""
    return await folio_exception_handler(request, to_api_exception(exc))


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle request validation errors raised by FastAPI."""
    errors = format_pydantic_errors(exc.errors())

    logger.warning(
        f"Validation error on {request.method} {request.url.path}: "
        f"{len(errors)} error(s)"
    )

    if len(errors) == 1:
        error_message = errors[0]["message"]
    else:
        error_message = f"Validation failed with {len(errors)} error(s)"

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        error=error_message,
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def pydantic_validation_handler(
    request: Request,
    exc: PydanticValidationError,
) -> JSONResponse:
    """Handle a Pydantic ValidationError raised inside a handler."""
    errors = format_pydantic_errors(exc.errors())

    logger.warning(
        f"Pydantic validation error on {request.method} {request.url.path}: "
        f"{len(errors)} error(s)"
    )

    if len(errors) == 1:
        error_message = errors[0]["message"]
    else:
        error_message = f"Validation failed with {len(errors)} error(s)"

    return create_error_response(
        status_code=status.HTTP_400_BAD_REQUEST,
        error=error_message,
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Convert HTTPException to the standard error format."""
    status_code_mapping = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.AUTHENTICATION_REQUIRED,
        403: ErrorCode.PERMISSION_DENIED,
        404: ErrorCode.RESOURCE_NOT_FOUND,
        405: ErrorCode.VALIDATION_ERROR,
        409: ErrorCode.RESOURCE_CONFLICT,
        422: ErrorCode.VALIDATION_ERROR,
        502: ErrorCode.EXTERNAL_SERVICE_ERROR,
        503: ErrorCode.EXTERNAL_SERVICE_ERROR,
    }
    error_code = status_code_mapping.get(exc.status_code, ErrorCode.INTERNAL_ERROR)

    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    if exc.status_code >= 500:
        logger.error(f"HTTP {exc.status_code}: {detail}")
    elif exc.status_code >= 400:
        logger.warning(f"HTTP {exc.status_code}: {detail}")

    headers = None
    if exc.headers and "WWW-Authenticate" in exc.headers:
        headers = {"WWW-Authenticate": exc.headers["WWW-Authenticate"]}

    return create_error_response(
        status_code=exc.status_code,
        error=detail,
        error_code=error_code.value,
        headers=headers,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Catch-all for unexpected errors.

    Logs the traceback, reports to Sentry and returns a generic message.
    """
    error_reference = str(uuid.uuid4())[:8]

    logger.error(
        f"Unhandled exception [ref:{error_reference}] on "
        f"{request.method} {request.url.path}: {exc}",
        exc_info=True,
    )

    event_id = report_to_sentry(
        exc,
        request,
        extra_context={"error_reference": error_reference}
    )

    if not IS_PRODUCTION:
        details = {"error_reference": error_reference}
        if event_id:
            details["sentry_event_id"] = event_id
        return create_error_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error=f"Internal server error: {type(exc).__name__}",
            error_code=ErrorCode.INTERNAL_ERROR.value,
            details=details,
        )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error="An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR.value,
        details={"error_reference": error_reference},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(FolioException, folio_exception_handler)
    app.add_exception_handler(domain.ContentError, content_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, pydantic_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.info("Exception handlers registered")
