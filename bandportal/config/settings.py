"""Application settings via Pydantic BaseSettings."""

from __future__ import annotations

import warnings
from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Database
    database_url: str = "sqlite+aiosqlite:///./bandportal.db"

    # App
    debug: bool = False
    log_level: str = "INFO"
    allowed_origins: list[str] = ["http://localhost:3000"]
    site_url: str = "http://localhost:3000"

    # Auth provider (Supabase-issued JWTs)
    supabase_jwt_secret: str | None = None
    supabase_jwt_audience: str = "authenticated"

    # Stripe
    stripe_secret_key: str | None = None
    stripe_webhook_secret: str | None = None
    stripe_api_base: str = "https://api.stripe.com/v1"

    # Email (Resend)
    resend_api_key: str | None = None
    email_from: str = "Dojo Band Portal <noreply@dojomail.us>"
    invite_ttl_days: int = 7


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""
    settings = Settings()
    if not settings.supabase_jwt_secret:
        warnings.warn(
            "SUPABASE_JWT_SECRET is not set. "
            "All authenticated requests will be rejected.",
            UserWarning,
            stacklevel=2,
        )
    if settings.invite_ttl_days < 1:
        msg = "INVITE_TTL_DAYS must be at least 1"
        raise ValueError(msg)
    return settings
