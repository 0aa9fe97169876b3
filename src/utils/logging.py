"""
Structured logging for the Folio API.

Provides:
- JSON log lines in production, colored lines in development
- Request context (request_id, user_id, correlation_id) on every record
- Redaction of credentials (JWTs, S3 keys, GC secret) from messages
- Timing helpers for batch jobs and slow operations
"""

import inspect
import json
import logging
import os
import re
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

SERVICE_NAME = "folio-api"

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

SENSITIVE_PATTERNS: List[re.Pattern] = [
    re.compile(r'password["\']?\s*[:=]\s*["\']?[^\s,}]+', re.IGNORECASE),
    re.compile(r'secret(?:[_-]?key)?["\']?\s*[:=]\s*["\']?[\w/+=-]+', re.IGNORECASE),
    re.compile(r'x-gc-secret["\']?\s*[:=]\s*["\']?[\w-]+', re.IGNORECASE),
    re.compile(r'token["\']?\s*[:=]\s*["\']?[\w.-]+', re.IGNORECASE),
    re.compile(r'bearer\s+[\w.-]+', re.IGNORECASE),
    re.compile(r'authorization["\']?\s*[:=]\s*["\']?[^\s,}]+', re.IGNORECASE),
    re.compile(r'\b(?:AKIA|ASIA)[0-9A-Z]{16}\b'),  # AWS access key ids
    re.compile(r'X-Amz-Signature=[0-9a-f]+', re.IGNORECASE),  # presigned URL signatures
    re.compile(r'eyJ[\w-]+\.eyJ[\w-]+\.[\w-]+'),  # JWTs (Supabase keys and session tokens)
]

REDACTED = "[REDACTED]"

EXCLUDED_RECORD_ATTRS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "request_id", "user_id", "correlation_id", "message", "taskName",
})


def redact_sensitive_data(message: str) -> str:
    """Replace credentials in a log message with ``[REDACTED]``."""
    if not message:
        return message

    result = message
    for pattern in SENSITIVE_PATTERNS:
        result = pattern.sub(REDACTED, result)
    return result


class RequestContextFilter(logging.Filter):
    """Add request context to all log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        record.user_id = user_id_var.get() or "-"
        record.correlation_id = correlation_id_var.get() or "-"
        return True


class SensitiveDataFilter(logging.Filter):
    """Filter sensitive data from log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = redact_sensitive_data(str(record.msg))
        if record.args:
            record.args = tuple(
                redact_sensitive_data(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )
        return True


def _extra_fields(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        k: v for k, v in record.__dict__.items()
        if k not in EXCLUDED_RECORD_ATTRS and not k.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """
    Single-line JSON records for production:

    {"timestamp": ..., "level": "INFO", "logger": "src.assets.gc",
     "message": ..., "service": "folio-api", "request_id": ...,
     "user_id": ..., "correlation_id": ..., "extra": {...}}
    """

    def __init__(self, service_name: str = SERVICE_NAME):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }

        if record.levelno >= logging.ERROR:
            log_data["source"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = _extra_fields(record)
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter with colors for development.

    Format: [timestamp] LEVEL    [req_id] [user_id] logger - message
    """

    COLORS: Dict[str, str] = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        reset = self.RESET if color else ""

        request_id = getattr(record, "request_id", "-")
        user_id = getattr(record, "user_id", "-")
        req_display = request_id[:8] if request_id != "-" else "-"
        user_display = user_id[:8] if user_id != "-" else "-"

        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]

        formatted = (
            f"{self.DIM}[{timestamp}]{self.RESET} "
            f"{color}{self.BOLD}{record.levelname:8}{reset} "
            f"{self.DIM}[{req_display:>8}] [{user_display:>8}]{self.RESET} "
            f"{record.name} - {record.getMessage()}"
        )

        extra_fields = _extra_fields(record)
        if extra_fields:
            formatted += f" {self.DIM}{extra_fields}{self.RESET}"

        if record.exc_info:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


def get_log_level() -> int:
    """Log level from ``LOG_LEVEL`` (INFO when unset or invalid)."""
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        return logging.INFO
    return level


def is_production() -> bool:
    env = os.environ.get(
        "ENVIRONMENT",
        os.environ.get("SENTRY_ENVIRONMENT", "development")
    )
    return env.lower() in ("production", "prod")


def should_use_json_format() -> bool:
    force_json = os.environ.get("LOG_FORMAT_JSON", "").lower() in ("true", "1", "yes")
    return force_json or is_production()


def setup_logging(
    service_name: str = SERVICE_NAME,
    log_level: Optional[int] = None,
    force_json: bool = False,
) -> logging.Logger:
    """
    Configure the root logger once at startup.

    Args:
        service_name: Name of the service for log identification
        log_level: Override log level (defaults to LOG_LEVEL env var)
        force_json: Force JSON output even in development

    Returns:
        Configured root logger
    """
    level = log_level if log_level is not None else get_log_level()
    use_json = force_json or should_use_json_format()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JSONFormatter(service_name) if use_json else DevelopmentFormatter())
    root_logger.addHandler(handler)

    # Third-party noise
    for name in ("uvicorn.access", "httpx", "httpcore", "urllib3", "asyncio", "botocore", "boto3", "hpack"):
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)

    root_logger.info(
        "Logging configured",
        extra={
            "log_level": logging.getLevelName(level),
            "format": "json" if use_json else "development",
            "service": service_name,
        },
    )

    return root_logger


def set_request_context(
    request_id: Optional[str] = None,
    user_id: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> None:
    """Set request context for the current async context."""
    if request_id is not None:
        request_id_var.set(request_id)
    if user_id is not None:
        user_id_var.set(user_id)
    if correlation_id is not None:
        correlation_id_var.set(correlation_id)


def clear_request_context() -> None:
    request_id_var.set(None)
    user_id_var.set(None)
    correlation_id_var.set(None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def get_user_id() -> Optional[str]:
    return user_id_var.get()


def get_correlation_id() -> Optional[str]:
    return correlation_id_var.get()


class Timer:
    """
    Context manager for timing operations.

    Usage:
        with Timer("asset_gc_batch", logger, logging.INFO) as timer:
            ...
        timer.elapsed_ms
    """

    def __init__(
        self,
        name: str,
        logger: Optional[logging.Logger] = None,
        log_level: int = logging.DEBUG,
    ):
        self.name = name
        self.logger = logger
        self.log_level = log_level
        self.start_time: Optional[float] = None
        self.elapsed_ms: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time is not None:
            self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000

        if self.logger:
            self.logger.log(
                self.log_level,
                f"{self.name} completed in {self.elapsed_ms:.2f}ms",
                extra={
                    "operation": self.name,
                    "duration_ms": round(self.elapsed_ms, 2),
                    "success": exc_type is None,
                },
            )


def timed(
    name: Optional[str] = None,
    logger: Optional[logging.Logger] = None,
    log_level: int = logging.DEBUG,
) -> Callable:
    """
    Decorator for timing sync or async functions.

    Args:
        name: Operation name (defaults to function name)
        logger: Logger to use (defaults to function's module logger)
        log_level: Level to log at
    """
    def decorator(func: Callable) -> Callable:
        operation_name = name or func.__name__
        func_logger = logger or logging.getLogger(func.__module__)

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                with Timer(operation_name, func_logger, log_level):
                    return await func(*args, **kwargs)
            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            with Timer(operation_name, func_logger, log_level):
                return func(*args, **kwargs)
        return sync_wrapper

    return decorator
