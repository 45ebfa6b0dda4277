"""Billing API routes: tier catalogue, Stripe checkout and customer portal."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from bandportal.billing.stripe_client import StripeClient
from bandportal.billing.tiers import STRIPE_PRODUCT_TIERS, get_tier_by_price
from bandportal.config.settings import get_settings
from bandportal.exceptions import BillingError, ConfigError
from bandportal.storage.repositories.bands import BandRepository
from bandportal.web.auth.rbac import require_band_admin
from bandportal.web.band_context import BandContext
from bandportal.web.dependencies import get_band_repo, get_stripe_provider

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["billing"])


class TierResponse(BaseModel):
    product_id: str
    name: str
    price_id: str
    yearly_price: int
    member_limit: int


class CheckoutRequest(BaseModel):
    price_id: str


class RedirectURLResponse(BaseModel):
    url: str


def _resolve_client(provider: Callable[[], StripeClient]) -> StripeClient:
    try:
        return provider()
    except ConfigError as exc:
        logger.error("stripe_not_configured", error=str(exc))
        raise HTTPException(status_code=503, detail="Billing is not configured") from exc


def _dashboard_url(query: str) -> str:
    return f"{get_settings().site_url.rstrip('/')}/admin/dashboard?{query}"


@router.get("/api/billing/tiers", response_model=list[TierResponse])
async def list_tiers() -> list[dict[str, Any]]:
    """Public plan catalogue, cheapest first."""
    tiers = sorted(STRIPE_PRODUCT_TIERS.items(), key=lambda item: item[1].member_limit)
    return [
        {
            "product_id": product_id,
            "name": tier.name,
            "price_id": tier.price_id,
            "yearly_price": tier.yearly_price,
            "member_limit": tier.member_limit,
        }
        for product_id, tier in tiers
    ]


@router.post("/api/bands/{band_id}/billing/checkout", response_model=RedirectURLResponse)
async def create_checkout(
    body: CheckoutRequest,
    ctx: BandContext = Depends(require_band_admin),
    stripe_provider: Callable[[], StripeClient] = Depends(get_stripe_provider),
) -> dict[str, str]:
    if get_tier_by_price(body.price_id) is None:
        raise HTTPException(status_code=422, detail="Unknown price")

    client = _resolve_client(stripe_provider)
    try:
        session = await client.create_checkout_session(
            price_id=body.price_id,
            band_id=ctx.band_id,
            success_url=_dashboard_url(f"checkout=success&band={ctx.band_id}"),
            cancel_url=_dashboard_url(f"checkout=cancel&band={ctx.band_id}"),
            customer_email=ctx.email or None,
        )
    except BillingError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    url = session.get("url")
    if not url:
        raise HTTPException(status_code=502, detail="Stripe did not return a checkout URL")
    return {"url": url}


@router.post("/api/bands/{band_id}/billing/portal", response_model=RedirectURLResponse)
async def create_portal(
    ctx: BandContext = Depends(require_band_admin),
    band_repo: BandRepository = Depends(get_band_repo),
    stripe_provider: Callable[[], StripeClient] = Depends(get_stripe_provider),
) -> dict[str, str]:
    """Open the Stripe customer portal so an admin can manage or renew the plan."""
    band = await band_repo.get(ctx.band_id)
    if not band:
        raise HTTPException(status_code=404, detail="Band not found")
    if not band.stripe_customer_id:
        raise HTTPException(status_code=409, detail="Band has no billing account yet")

    client = _resolve_client(stripe_provider)
    try:
        session = await client.create_portal_session(
            band.stripe_customer_id, return_url=_dashboard_url("portal=return")
        )
    except BillingError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    url = session.get("url")
    if not url:
        raise HTTPException(status_code=502, detail="Stripe did not return a portal URL")
    return {"url": url}
