"""
API exception classes for the Folio API.

Each exception carries the HTTP status code and machine-readable error code
returned to clients. Service-layer errors (``src.errors``) are translated into
these by ``app.error_handlers``.

Exception Hierarchy:
    FolioException (base)
    ├── ValidationError (400)
    ├── AuthenticationError (401)
    ├── AuthorizationError (403)
    ├── ResourceNotFoundError (404)
    ├── ConflictError (409)
    ├── ExternalServiceError (502)
    │   └── StorageServiceError
    └── DatabaseError (500)
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Machine-readable identifiers for error responses."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_FORMAT = "INVALID_FORMAT"

    # Authentication errors (401)
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"

    # Authorization errors (403)
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Resource errors (404)
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    CONTENT_NOT_FOUND = "CONTENT_NOT_FOUND"
    VERSION_NOT_FOUND = "VERSION_NOT_FOUND"
    NOT_YET_PUBLISHED = "NOT_YET_PUBLISHED"

    # Conflict errors (409)
    RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
    DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"
    VERSION_CONFLICT = "VERSION_CONFLICT"

    # External service errors (502)
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"

    # Database errors (500)
    DATABASE_ERROR = "DATABASE_ERROR"


class FolioException(Exception):
    """
    Base exception class for all API errors.

    Attributes:
        message: Human-readable error message (sanitized for external display).
        error_code: Machine-readable error code from ErrorCode enum.
        status_code: HTTP status code to return.
        details: Additional context about the error (optional).
        internal_message: Detailed message for logging (not exposed to clients).
    """

    status_code: int = 500
    default_error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.internal_message = internal_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for API response."""
        response = {
            "success": False,
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.details:
            response["details"] = self.details
        return response

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code.value!r}, "
            f"status_code={self.status_code})"
        )


# =============================================================================
# 4xx
# =============================================================================

class ValidationError(FolioException):
    """Request data failed validation."""

    status_code = 400
    default_error_code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid request data"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            str_value = str(value)
            details["value"] = str_value[:100] + "..." if len(str_value) > 100 else str_value

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message,
        )


class AuthenticationError(FolioException):
    """Missing, malformed or expired bearer token."""

    status_code = 401
    default_error_code = ErrorCode.AUTHENTICATION_REQUIRED
    default_message = "Authentication required"


class AuthorizationError(FolioException):
    """
    The authenticated user may not act on the resource.

    The message is deliberately generic so that nothing about another user's
    drafts leaks through the error.
    """

    status_code = 403
    default_error_code = ErrorCode.PERMISSION_DENIED
    default_message = "Permission denied"


class ResourceNotFoundError(FolioException):
    """A requested resource does not exist (or is not visible)."""

    status_code = 404
    default_error_code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "Resource not found"

    def __init__(
        self,
        message: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id:
            details["resource_id"] = resource_id[:36] if len(resource_id) > 36 else resource_id

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message,
        )


class ConflictError(FolioException):
    """Uniqueness or state conflict (slug taken, version race, published snapshot)."""

    status_code = 409
    default_error_code = ErrorCode.RESOURCE_CONFLICT
    default_message = "Resource conflict"

    def __init__(
        self,
        message: Optional[str] = None,
        resource_type: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = details or {}
        if resource_type:
            details["resource_type"] = resource_type

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message,
        )


# =============================================================================
# 5xx
# =============================================================================

class ExternalServiceError(FolioException):
    """A third-party service call failed."""

    status_code = 502
    default_error_code = ErrorCode.EXTERNAL_SERVICE_ERROR
    default_message = "External service error"

    def __init__(
        self,
        message: Optional[str] = None,
        service_name: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        details = details or {}
        if service_name:
            details["service"] = service_name

        self.original_error = original_error

        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            internal_message=internal_message or (str(original_error) if original_error else None),
        )


class StorageServiceError(ExternalServiceError):
    """Object storage (S3) calls failed."""

    default_error_code = ErrorCode.STORAGE_ERROR
    default_message = "File storage temporarily unavailable"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(
            message=message,
            service_name="storage",
            error_code=error_code,
            details=details,
            internal_message=internal_message,
            original_error=original_error,
        )


class DatabaseError(FolioException):
    """
    Datastore operation failed.

    Never exposes operation details to clients; ``internal_message`` carries
    them to the logs.
    """

    status_code = 500
    default_error_code = ErrorCode.DATABASE_ERROR
    default_message = "A database error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        operation: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.original_error = original_error

        super().__init__(
            message=message,
            error_code=error_code,
            details={},
            internal_message=internal_message or (
                f"Database operation '{operation}' failed: {original_error}"
                if operation and original_error
                else None
            ),
        )


def get_safe_error_message(exc: Exception) -> str:
    """Message safe for client display."""
    if isinstance(exc, FolioException):
        return exc.message
    return "An unexpected error occurred. Please try again later."
