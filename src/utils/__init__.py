"""Utility modules for the Folio API."""

from .logging import (
    setup_logging,
    set_request_context,
    clear_request_context,
    get_request_id,
    get_user_id,
    get_correlation_id,
    Timer,
    timed,
    JSONFormatter,
    DevelopmentFormatter,
    RequestContextFilter,
    SensitiveDataFilter,
    redact_sensitive_data,
)

__all__ = [
    "setup_logging",
    "set_request_context",
    "clear_request_context",
    "get_request_id",
    "get_user_id",
    "get_correlation_id",
    "Timer",
    "timed",
    "JSONFormatter",
    "DevelopmentFormatter",
    "RequestContextFilter",
    "SensitiveDataFilter",
    "redact_sensitive_data",
]
