"""
Folio API application package.

FastAPI routers, authentication, middleware and error handling around the
content services in ``src``.
"""

from .error_handlers import register_exception_handlers
from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DatabaseError,
    ErrorCode,
    ExternalServiceError,
    FolioException,
    ResourceNotFoundError,
    StorageServiceError,
    ValidationError,
)

__version__ = "1.0.0"

__all__ = [
    # Exception classes
    "FolioException",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ResourceNotFoundError",
    "ConflictError",
    "ExternalServiceError",
    "StorageServiceError",
    "DatabaseError",
    "ErrorCode",
    # Error handlers
    "register_exception_handlers",
]
