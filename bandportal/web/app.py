"""FastAPI application factory."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bandportal import __version__
from bandportal.billing.webhook import router as stripe_webhook_router
from bandportal.config.logging import setup_logging
from bandportal.config.settings import get_settings
from bandportal.storage.database import init_db
from bandportal.web.health import check_health
from bandportal.web.middleware import RequestIDMiddleware
from bandportal.web.routes.bands import router as bands_router
from bandportal.web.routes.billing import router as billing_router
from bandportal.web.routes.content import router as content_router
from bandportal.web.routes.invitations import router as invitations_router

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings = get_settings()
    # Schema migrations are managed outside the app for real databases
    if settings.database_url.startswith("sqlite"):
        await init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_output=not settings.debug)

    app = FastAPI(
        title="Band Portal",
        description="Band membership, lesson library and subscription API",
        version=__version__,
        lifespan=_lifespan,
    )

    # Middleware (last added runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["Content-Type", "Authorization", "X-Request-ID"],
    )
    app.add_middleware(RequestIDMiddleware)

    # Stripe webhooks (public, signature-verified internally)
    app.include_router(stripe_webhook_router)

    @app.get("/api/health")
    async def health_check() -> dict[str, object]:
        return await check_health()

    # Each route authenticates through its own band-scoped dependencies
    for router in (bands_router, invitations_router, content_router, billing_router):
        app.include_router(router)

    logger.info("app_created")
    return app
