"""Middleware components for the Folio API."""

from .logging import RequestLoggingMiddleware

__all__ = [
    "RequestLoggingMiddleware",
]
