"""Subscription tiers keyed by Stripe product id."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StripeTier:
    """A purchasable band plan."""

    name: str
    price_id: str
    yearly_price: int  # USD
    member_limit: int


STRIPE_PRODUCT_TIERS: dict[str, StripeTier] = {
    "prod_SbQUcKNsgCqD0B": StripeTier(
        name="Dojo U Corps (0-10 Members)",
        price_id="price_1RgDdBGaCjXRja84vAkRZMMY",
        yearly_price=1000,
        member_limit=10,
    ),
    "prod_SbcF6ACgEplojA": StripeTier(
        name="Dojo U Corps (11-20 Members)",
        price_id="price_1RgP1HGaCjXRja84CxepCyx6",
        yearly_price=1700,
        member_limit=20,
    ),
    "prod_Sbh8ZRerL3eQ8V": StripeTier(
        name="Dojo U Corps (21-30 Members)",
        price_id="price_1RgTjpGaCjXRja8480DtvH38",
        yearly_price=2400,
        member_limit=30,
    ),
    "prod_SbhBZlI18E50u3": StripeTier(
        name="Dojo U Corps (31-40 Members)",
        price_id="price_1RgTmrGaCjXRja84kW7rEmvA",
        yearly_price=3000,
        member_limit=40,
    ),
}


def get_member_limit(product_id: str | None) -> int | None:
    """Member limit for a product, or None when the product is not a known tier."""
    if not product_id:
        return None
    tier = STRIPE_PRODUCT_TIERS.get(product_id)
    return tier.member_limit if tier else None


def get_tier_by_price(price_id: str) -> tuple[str, StripeTier] | None:
    """Return (product_id, tier) for a price id."""
    for product_id, tier in STRIPE_PRODUCT_TIERS.items():
        if tier.price_id == price_id:
            return product_id, tier
    return None
