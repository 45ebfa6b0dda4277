"""Supabase access-token validation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import jwt
import structlog

from bandportal.config.settings import get_settings
from bandportal.exceptions import ConfigError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AuthClaims:
    """Parsed and validated claims from a Supabase JWT."""

    sub: str  # auth user id
    email: str
    role: str = "authenticated"


def verify_access_token(token: str) -> AuthClaims:
    """Verify a Supabase HS256 access token and return parsed claims.

    Raises jwt.PyJWTError on invalid/expired tokens and ConfigError when no
    JWT secret is configured.
    """
    settings = get_settings()
    if not settings.supabase_jwt_secret:
        msg = "SUPABASE_JWT_SECRET is not configured"
        raise ConfigError(msg)

    payload: dict[str, Any] = jwt.decode(
        token,
        settings.supabase_jwt_secret,
        algorithms=["HS256"],
        audience=settings.supabase_jwt_audience,
        options={"require": ["sub", "exp"]},
    )
    return AuthClaims(
        sub=str(payload["sub"]),
        email=str(payload.get("email", "")),
        role=str(payload.get("role", "authenticated")),
    )
