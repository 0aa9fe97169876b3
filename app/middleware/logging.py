"""
Request logging middleware for the Folio API.

Provides:
- Request ID generation and propagation
- Request/response logging with timing
- Health check and docs exclusion
- Correlation ID support
"""

import logging
import time
import uuid
from typing import Callable, FrozenSet, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from src.utils.logging import clear_request_context, set_request_context

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Structured request logging.

    Logs method, path, status code and duration for every request except the
    excluded paths, and adds X-Request-ID / X-Response-Time headers.
    """

    DEFAULT_EXCLUDE_PATHS: FrozenSet[str] = frozenset({
        "/",
        "/docs",
        "/openapi.json",
        "/redoc",
        "/favicon.ico",
    })

    # Only logged when they fail
    ERROR_ONLY_PATHS: FrozenSet[str] = frozenset({
        "/health",
    })

    def __init__(
        self,
        app,
        exclude_paths: Optional[FrozenSet[str]] = None,
        error_only_paths: Optional[FrozenSet[str]] = None,
    ):
        super().__init__(app)
        self.exclude_paths = exclude_paths or self.DEFAULT_EXCLUDE_PATHS
        self.error_only_paths = error_only_paths or self.ERROR_ONLY_PATHS

    def _get_request_id(self, request: Request) -> str:
        """Upstream request ID if present, otherwise a new UUID."""
        return (
            request.headers.get("X-Request-ID")
            or request.headers.get("X-Amzn-Trace-Id")
            or str(uuid.uuid4())
        )

    def _get_correlation_id(self, request: Request) -> Optional[str]:
        return request.headers.get("X-Correlation-ID")

    def _get_client_ip(self, request: Request) -> str:
        forwarded = request.headers.get("X-Forwarded-For")
        if forwarded:
            return forwarded.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip.strip()

        if request.client:
            return request.client.host

        return "unknown"

    def _should_log(self, path: str, status_code: int) -> bool:
        if path in self.exclude_paths:
            return False
        if path in self.error_only_paths:
            return status_code >= 400
        return True

    @staticmethod
    def _get_log_level(status_code: int) -> int:
        if status_code >= 500:
            return logging.ERROR
        if status_code >= 400:
            return logging.WARNING
        return logging.INFO

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = self._get_request_id(request)
        correlation_id = self._get_correlation_id(request)

        set_request_context(request_id=request_id, correlation_id=correlation_id)
        request.state.request_id = request_id

        method = request.method
        path = request.url.path
        client_ip = self._get_client_ip(request)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start_time) * 1000

            user_id = getattr(request.state, "user_id", None)
            if user_id:
                set_request_context(user_id=str(user_id))

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms:.2f}ms"
            if correlation_id:
                response.headers["X-Correlation-ID"] = correlation_id

            if self._should_log(path, response.status_code):
                logger.log(
                    self._get_log_level(response.status_code),
                    f"{method} {path} {response.status_code} ({duration_ms:.2f}ms)",
                    extra={
                        "event": "http_request",
                        "http_method": method,
                        "http_path": path,
                        "http_status": response.status_code,
                        "duration_ms": round(duration_ms, 2),
                        "client_ip": client_ip,
                    },
                )

            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"{method} {path} FAILED ({duration_ms:.2f}ms): {type(exc).__name__}",
                extra={
                    "event": "http_request_error",
                    "http_method": method,
                    "http_path": path,
                    "duration_ms": round(duration_ms, 2),
                    "client_ip": client_ip,
                    "error_type": type(exc).__name__,
                },
                exc_info=True,
            )
            raise

        finally:
            clear_request_context()
