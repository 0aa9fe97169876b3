"""
Domain errors raised by the content and asset services.

These are transport-agnostic: the HTTP layer maps them onto the API
exception hierarchy in ``app.exceptions`` (see ``app.error_handlers``).

Hierarchy:
    ContentError (base)
    ├── NotFoundError
    │   └── NotPublishedError
    ├── UnauthorizedError
    ├── ConflictError
    ├── StorageError
    │   └── DatastoreError
    ├── ParseError
    └── InvalidInputError
"""

from typing import Optional


class ContentError(Exception):
    """Base class for content/asset domain errors."""

    default_message = "Content operation failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class NotFoundError(ContentError):
    """An item, version, tag or asset does not exist."""

    default_message = "Resource not found"

    def __init__(
        self,
        message: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        if message is None and resource_type:
            message = f"{resource_type.replace('_', ' ').capitalize()} not found"
        super().__init__(message)


class NotPublishedError(NotFoundError):
    """A reader asked for an item that has no published snapshot."""

    default_message = "Content not yet published"

    def __init__(self, resource_id: Optional[str] = None):
        super().__init__(self.default_message, resource_type="content_item", resource_id=resource_id)


class UnauthorizedError(ContentError):
    """The acting user does not own the item."""

    default_message = "You do not have permission to modify this content"


class ConflictError(ContentError):
    """Uniqueness or state conflict (slug taken, version number race, ...)."""

    default_message = "Resource conflict"

    def __init__(self, message: Optional[str] = None, resource_type: Optional[str] = None):
        self.resource_type = resource_type
        super().__init__(message)


class StorageError(ContentError):
    """Object storage or datastore call failed."""

    default_message = "Storage operation failed"


class DatastoreError(StorageError):
    """A datastore (Supabase) query failed."""

    default_message = "Database operation failed"


class ParseError(ContentError):
    """Serialized block content could not be parsed."""

    default_message = "Malformed document content"


class InvalidInputError(ContentError):
    """A caller-supplied value is unusable (bad asset URL, empty name, ...)."""

    default_message = "Invalid input"
