"""Stripe webhook receiver for band subscription sync."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request

from bandportal.billing.stripe_client import StripeClient
from bandportal.billing.tiers import get_member_limit
from bandportal.config.settings import get_settings
from bandportal.exceptions import BillingError
from bandportal.storage.repositories.bands import BandRepository
from bandportal.types import SUBSCRIPTION_CANCELLED
from bandportal.web.dependencies import get_band_repo, get_stripe_provider

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["webhooks"])

# Stripe signature tolerance in seconds (5 minutes)
_STRIPE_TOLERANCE = 300

StripeProvider = Callable[[], StripeClient]


def verify_stripe_signature(
    payload: bytes,
    header: str,
    secret: str,
    tolerance: int = _STRIPE_TOLERANCE,
    now: float | None = None,
) -> bool:
    """Verify a ``Stripe-Signature`` header.

    The header looks like ``t=<unix ts>,v1=<hex sig>[,v1=<hex sig>...]``; the
    signed message is ``"<t>." + payload`` under HMAC-SHA256 with the endpoint
    secret used verbatim (``whsec_`` prefix included).
    """
    timestamp = ""
    signatures: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)

    if not timestamp or not signatures:
        return False

    try:
        ts = int(timestamp)
    except ValueError:
        return False
    current = time.time() if now is None else now
    # Only stale deliveries are rejected; clock skew ahead of us is accepted
    if current - ts > tolerance:
        logger.warning("webhook_timestamp_expired", delta=current - ts)
        return False

    to_sign = f"{timestamp}.".encode() + payload
    expected = hmac.new(secret.encode(), to_sign, hashlib.sha256).hexdigest()
    return any(hmac.compare_digest(sig, expected) for sig in signatures)


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    band_repo: BandRepository = Depends(get_band_repo),
    stripe_provider: StripeProvider = Depends(get_stripe_provider),
) -> dict[str, bool]:
    """Handle Stripe events that change a band's subscription."""
    settings = get_settings()
    webhook_secret = settings.stripe_webhook_secret
    if not webhook_secret or not webhook_secret.strip():
        logger.error("webhook_secret_missing")
        raise HTTPException(status_code=500, detail="Webhook secret not configured")

    payload = await request.body()
    signature = request.headers.get("stripe-signature", "")
    if not verify_stripe_signature(payload, signature, webhook_secret.strip()):
        logger.warning("webhook_signature_invalid")
        raise HTTPException(status_code=400, detail="Invalid webhook signature")

    try:
        event = json.loads(payload)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Malformed webhook payload") from exc

    event_type = event.get("type", "")
    obj = event.get("data", {}).get("object", {})
    logger.info("webhook_received", event_type=event_type, event_id=event.get("id"))

    handler = _HANDLERS.get(event_type)
    if handler:
        try:
            await handler(obj, band_repo, stripe_provider)
        except BillingError as exc:
            # Non-2xx makes Stripe retry the delivery later
            logger.error("webhook_stripe_call_failed", event_type=event_type, error=str(exc))
            raise HTTPException(status_code=502, detail="Upstream Stripe call failed") from exc
    else:
        logger.debug("webhook_unhandled_event", event_type=event_type)

    return {"received": True}


# --- Event handlers ---


async def _handle_checkout_completed(
    session: dict[str, Any], band_repo: BandRepository, stripe_provider: StripeProvider
) -> None:
    """Attach a new subscription to the band named in the checkout metadata."""
    band_id = (session.get("metadata") or {}).get("bandId")
    customer_id = session.get("customer")
    subscription_id = session.get("subscription")
    if not band_id or not customer_id or not subscription_id:
        logger.warning(
            "checkout_missing_ids",
            band_id=band_id,
            customer_id=customer_id,
            subscription_id=subscription_id,
        )
        return

    stripe = stripe_provider()
    subscription = await stripe.retrieve_subscription(subscription_id)
    metadata = subscription.get("metadata") or {}
    if metadata.get("bandId") != band_id:
        # Later subscription events only carry the subscription's own metadata
        await stripe.update_subscription_metadata(subscription_id, {**metadata, "bandId": band_id})
        logger.info(
            "subscription_metadata_tagged", subscription_id=subscription_id, band_id=band_id
        )

    product_id = _product_id(subscription)
    fields: dict[str, Any] = {
        "stripe_customer_id": customer_id,
        "stripe_subscription_id": subscription_id,
        "subscription_status": subscription.get("status", ""),
        "current_period_end": _period_end(subscription),
        "stripe_product_id": product_id,
    }
    _apply_tier_limit(fields, product_id)
    await _update_band(band_repo, band_id, fields, "checkout.session.completed")


async def _handle_subscription_updated(
    subscription: dict[str, Any], band_repo: BandRepository, _stripe: StripeProvider
) -> None:
    band_id = (subscription.get("metadata") or {}).get("bandId")
    if not band_id:
        logger.warning("subscription_missing_band_id", subscription_id=subscription.get("id"))
        return

    product_id = _product_id(subscription)
    fields: dict[str, Any] = {
        "stripe_customer_id": subscription.get("customer"),
        "stripe_subscription_id": subscription.get("id"),
        "subscription_status": subscription.get("status", ""),
        "stripe_product_id": product_id,
    }
    period_end = _period_end(subscription)
    if period_end is not None:
        fields["current_period_end"] = period_end
    _apply_tier_limit(fields, product_id)
    await _update_band(band_repo, band_id, fields, "customer.subscription.updated")


async def _handle_subscription_deleted(
    subscription: dict[str, Any], band_repo: BandRepository, _stripe: StripeProvider
) -> None:
    """Mark the band cancelled; access lapses once the paid period is over."""
    band_id = (subscription.get("metadata") or {}).get("bandId")
    if not band_id:
        logger.warning("subscription_missing_band_id", subscription_id=subscription.get("id"))
        return

    product_id = _product_id(subscription)
    fields: dict[str, Any] = {
        "stripe_customer_id": subscription.get("customer"),
        "stripe_subscription_id": subscription.get("id"),
        "subscription_status": SUBSCRIPTION_CANCELLED,
        "stripe_product_id": product_id,
    }
    period_end = _period_end(subscription) or _from_epoch(subscription.get("ended_at"))
    if period_end is not None:
        fields["current_period_end"] = period_end
    _apply_tier_limit(fields, product_id)
    await _update_band(band_repo, band_id, fields, "customer.subscription.deleted")


async def _handle_invoice_event(
    invoice: dict[str, Any], _band_repo: BandRepository, _stripe: StripeProvider
) -> None:
    logger.info(
        "invoice_event",
        invoice_id=invoice.get("id"),
        customer_id=invoice.get("customer"),
        subscription_id=invoice.get("subscription"),
    )


# --- Helpers ---


def _from_epoch(value: Any) -> datetime | None:
    """Convert Stripe epoch seconds to a naive UTC datetime."""
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=UTC).replace(tzinfo=None)


def _first_item(subscription: dict[str, Any]) -> dict[str, Any]:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def _period_end(subscription: dict[str, Any]) -> datetime | None:
    """Period end from the subscription, or from its first item on newer API versions."""
    value = subscription.get("current_period_end")
    if value is None:
        value = _first_item(subscription).get("current_period_end")
    return _from_epoch(value)


def _product_id(subscription: dict[str, Any]) -> str | None:
    product = (_first_item(subscription).get("price") or {}).get("product")
    if isinstance(product, dict):
        product = product.get("id")
    return product if isinstance(product, str) else None


def _apply_tier_limit(fields: dict[str, Any], product_id: str | None) -> None:
    limit = get_member_limit(product_id)
    if limit is not None:
        fields["member_limit"] = limit


async def _update_band(
    band_repo: BandRepository, band_id: str, fields: dict[str, Any], event_type: str
) -> None:
    band = await band_repo.update_subscription(band_id, **fields)
    if band is None:
        logger.warning("webhook_band_not_found", band_id=band_id, event_type=event_type)
        return
    logger.info(
        "webhook_band_updated",
        event_type=event_type,
        band_id=band_id,
        status=fields.get("subscription_status"),
        product_id=fields.get("stripe_product_id"),
    )


# Handler dispatch map
_HANDLERS: dict[str, Callable[..., Awaitable[None]]] = {
    "checkout.session.completed": _handle_checkout_completed,
    "customer.subscription.updated": _handle_subscription_updated,
    "customer.subscription.deleted": _handle_subscription_deleted,
    "invoice.upcoming": _handle_invoice_event,
    "invoice.payment_failed": _handle_invoice_event,
}
