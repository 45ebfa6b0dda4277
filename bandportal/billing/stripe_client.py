"""Minimal async Stripe REST client.

Stripe's API takes form-encoded bodies with bracketed keys for nested
objects (``metadata[bandId]=...``, ``line_items[0][price]=...``).
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from bandportal.config.settings import get_settings
from bandportal.exceptions import BillingError, ConfigError

logger = structlog.get_logger(__name__)

_TIMEOUT_SECONDS = 15.0


def _flatten(data: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested dicts/lists into Stripe's bracketed form keys."""
    items: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            items.extend(_flatten(value, name))
        elif isinstance(value, list):
            for index, entry in enumerate(value):
                entry_name = f"{name}[{index}]"
                if isinstance(entry, dict):
                    items.extend(_flatten(entry, entry_name))
                else:
                    items.append((entry_name, str(entry)))
        elif isinstance(value, bool):
            items.append((name, "true" if value else "false"))
        else:
            items.append((name, str(value)))
    return items


class StripeClient:
    """Async wrapper around the handful of Stripe endpoints the portal uses."""

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.stripe.com/v1",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key
        self._base_url = base_url.rstrip("/")
        self._transport = transport

    async def _request(
        self, method: str, path: str, data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=_TIMEOUT_SECONDS, transport=self._transport
            ) as client:
                resp = await client.request(
                    method,
                    url,
                    data=dict(_flatten(data)) if data else None,
                    headers={"Authorization": f"Bearer {self._secret_key}"},
                )
        except httpx.HTTPError as exc:
            logger.warning("stripe_request_failed", path=path, error=str(exc))
            raise BillingError(f"Stripe request failed: {exc}") from exc

        if resp.is_error:
            message = _error_message(resp)
            logger.warning(
                "stripe_error_response", path=path, status=resp.status_code, error=message
            )
            raise BillingError(message, status_code=resp.status_code)

        body: dict[str, Any] = resp.json()
        return body

    async def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/subscriptions/{subscription_id}")

    async def update_subscription_metadata(
        self, subscription_id: str, metadata: dict[str, str]
    ) -> dict[str, Any]:
        return await self._request(
            "POST", f"/subscriptions/{subscription_id}", {"metadata": metadata}
        )

    async def create_checkout_session(
        self,
        *,
        price_id: str,
        band_id: str,
        success_url: str,
        cancel_url: str,
        customer_email: str | None = None,
    ) -> dict[str, Any]:
        """Create a subscription checkout; ``bandId`` rides along in metadata."""
        session = await self._request(
            "POST",
            "/checkout/sessions",
            {
                "mode": "subscription",
                "payment_method_types": ["card"],
                "line_items": [{"price": price_id, "quantity": 1}],
                "success_url": success_url,
                "cancel_url": cancel_url,
                "customer_email": customer_email,
                "metadata": {"bandId": band_id},
            },
        )
        logger.info("stripe_checkout_created", band_id=band_id, session_id=session.get("id"))
        return session

    async def create_portal_session(self, customer_id: str, return_url: str) -> dict[str, Any]:
        return await self._request(
            "POST",
            "/billing_portal/sessions",
            {"customer": customer_id, "return_url": return_url},
        )


def _error_message(resp: httpx.Response) -> str:
    try:
        error = resp.json().get("error", {})
    except ValueError:
        return f"Stripe returned HTTP {resp.status_code}"
    return str(error.get("message") or f"Stripe returned HTTP {resp.status_code}")


def get_stripe_client() -> StripeClient:
    """Build a client from settings. Raises ConfigError when Stripe is not configured."""
    settings = get_settings()
    if not settings.stripe_secret_key:
        msg = "STRIPE_SECRET_KEY is not configured"
        raise ConfigError(msg)
    return StripeClient(settings.stripe_secret_key, base_url=settings.stripe_api_base)
