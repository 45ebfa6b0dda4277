"""Health check endpoint logic."""

from __future__ import annotations

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from bandportal import __version__
from bandportal.config.settings import get_settings
from bandportal.storage.database import get_engine

logger = structlog.get_logger(__name__)


async def check_health() -> dict[str, object]:
    """Return service status with a database probe and outbound integration flags."""
    settings = get_settings()
    result: dict[str, object] = {
        "status": "healthy",
        "version": __version__,
        "database": "connected",
        "billing": "configured" if settings.stripe_secret_key else "disabled",
        "email": "configured" if settings.resend_api_key else "disabled",
    }

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("health_check_db_failed", error=str(exc))
        result["database"] = "unavailable"
        result["status"] = "degraded"

    return result
