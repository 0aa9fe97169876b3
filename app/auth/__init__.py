"""
Authentication dependencies for the Folio API.

Admin endpoints require a Supabase Auth bearer token; the token's ``sub``
claim is the acting user id. Public endpoints accept an optional token so an
owner can preview drafts.

In development (``DEV_MODE=true`` outside production, with only localhost
origins) the ``X-User-ID`` header is accepted in place of a token.
"""

import logging
from typing import Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.config import get_settings
from src.utils.logging import set_request_context

from ..exceptions import AuthenticationError, ErrorCode
from .supabase_jwt import TokenConfigurationError, verify_supabase_token

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

DEV_USER_HEADER = "X-User-ID"
DEV_USER_ID = "dev_user"

_dev_mode_warning_logged = False


def _is_dev_mode_safe() -> bool:
    """
    DEV_MODE is refused when production indicators are present: a production
    environment or a non-localhost CORS origin.
    """
    security = get_settings().security
    if security.is_production:
        return False
    for origin in security.origins_list:
        origin = origin.lower()
        if "localhost" not in origin and "127.0.0.1" not in origin:
            return False
    return True


def _dev_user(request: Request) -> Optional[str]:
    global _dev_mode_warning_logged

    if not get_settings().security.dev_mode:
        return None
    if not _is_dev_mode_safe():
        logger.error(
            "DEV_MODE was requested but blocked due to production indicators. "
            "Check ENVIRONMENT and ALLOWED_ORIGINS."
        )
        return None
    if not _dev_mode_warning_logged:
        logger.warning("DEV_MODE is enabled - token verification is bypassed")
        _dev_mode_warning_logged = True
    return request.headers.get(DEV_USER_HEADER) or DEV_USER_ID


def _authenticate(token: str) -> str:
    try:
        claims = verify_supabase_token(token, get_settings().auth)
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired", error_code=ErrorCode.EXPIRED_TOKEN)
    except jwt.PyJWTError as e:
        raise AuthenticationError(
            "Invalid access token",
            error_code=ErrorCode.INVALID_TOKEN,
            internal_message=str(e),
        )
    except TokenConfigurationError as e:
        logger.error(f"Cannot verify access tokens: {e}")
        raise AuthenticationError("Authentication is not configured", internal_message=str(e))
    return str(claims["sub"])


def _bind_user(request: Request, user_id: str) -> str:
    request.state.user_id = user_id
    set_request_context(user_id=user_id)
    return user_id


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> str:
    """
    Resolve the acting user from the bearer token.

    Raises:
        AuthenticationError: If the token is missing or invalid.
    """
    dev_user = _dev_user(request)
    if dev_user:
        return _bind_user(request, dev_user)

    if credentials is None or not credentials.credentials:
        raise AuthenticationError()

    return _bind_user(request, _authenticate(credentials.credentials))


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Like ``get_current_user`` but anonymous visitors (or bad tokens) yield None."""
    dev_user = _dev_user(request)
    if dev_user:
        return _bind_user(request, dev_user)

    if credentials is None or not credentials.credentials:
        return None
    try:
        return _bind_user(request, _authenticate(credentials.credentials))
    except AuthenticationError as e:
        logger.debug(f"Ignoring invalid token on public route: {e.internal_message or e.message}")
        return None


__all__ = [
    "bearer_scheme",
    "get_current_user",
    "get_optional_user",
    "verify_supabase_token",
]
