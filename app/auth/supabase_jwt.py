"""
Supabase Auth JWT verification helpers.

The admin frontend signs users in with Supabase Auth and sends the access
token as `Authorization: Bearer <jwt>`. Tokens are verified either with the
project's shared JWT secret (HS256) or, for asymmetric signing keys, against
the project's JWKS endpoint.

Configuration:
- SUPABASE_JWT_SECRET: legacy shared secret (HS256).
- SUPABASE_JWKS_URL: JWKS URL, e.g.
  https://<project>.supabase.co/auth/v1/.well-known/jwks.json
- SUPABASE_JWT_AUDIENCE: expected `aud` claim (default "authenticated").
"""

from functools import lru_cache
from typing import Any, Dict, Optional

import jwt
from jwt import PyJWKClient

from src.config import AuthSettings


ASYMMETRIC_ALGORITHMS = ["RS256", "ES256"]


class TokenConfigurationError(Exception):
    """Neither a JWT secret nor a JWKS URL is configured."""


@lru_cache(maxsize=4)
def _get_jwks_client(jwks_url: str) -> PyJWKClient:
    return PyJWKClient(jwks_url)


def _audience(settings: AuthSettings) -> Optional[str]:
    raw = (settings.supabase_jwt_audience or "").strip()
    if not raw or raw.lower() in ("none", "null", "disabled"):
        return None
    return raw


def verify_supabase_token(token: str, settings: AuthSettings) -> Dict[str, Any]:
    """
    Verify a Supabase access token and return its claims.

    Raises:
        TokenConfigurationError: If no verification key is configured.
        jwt.PyJWTError: On invalid or expired tokens.
    """
    audience = _audience(settings)
    options = {"verify_aud": audience is not None, "require": ["exp", "sub"]}

    if settings.supabase_jwt_secret:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret.get_secret_value(),
            algorithms=["HS256"],
            audience=audience,
            options=options,
        )

    if settings.supabase_jwks_url:
        signing_key = _get_jwks_client(settings.supabase_jwks_url.rstrip("/")).get_signing_key_from_jwt(token)
        return jwt.decode(
            token,
            signing_key.key,
            algorithms=ASYMMETRIC_ALGORITHMS,
            audience=audience,
            options=options,
        )

    raise TokenConfigurationError("SUPABASE_JWT_SECRET or SUPABASE_JWKS_URL must be set")
