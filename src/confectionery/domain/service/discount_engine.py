"""Domain service: Discount Engine.

Turns a variant's base price into the final unit price for a quantity.
Pure: no I/O, no clock unless ``now`` is omitted.

Priority chain:
  1. Variant fixed discount, applied to the base price.
  2. Variant tiered discount, applied to the result of step 1 (compounding).
  3. Only for variants with no discount configuration at all, the parent's
     legacy tiered discount, applied to the base price.

Intermediate prices are exact fractions. Rounding (half-up, to whole minor
units) happens once, on the final unit price.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from fractions import Fraction
from math import floor

from confectionery.domain.exceptions import ValidationError
from confectionery.domain.model.catalog import ProductParent, ProductVariant
from confectionery.domain.model.value_objects import (
    DiscountKind,
    DiscountTier,
    FixedDiscount,
    Quantity,
)


@dataclass(frozen=True)
class PriceQuote:
    """Server-authoritative price of one (variant, quantity) pair."""

    original_price: int
    unit_price: int
    quantity: int
    applied_discount_description: str = ""
    applied_tier: DiscountTier | None = None

    @property
    def discount_per_unit(self) -> int:
        return self.original_price - self.unit_price

    @property
    def total_discount(self) -> int:
        return self.discount_per_unit * self.quantity

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


def round_half_up(value: Fraction) -> int:
    """Round a non-negative fraction to the nearest integer, .5 going up."""
    return floor(value + Fraction(1, 2))


def _apply_fixed(price: Fraction, discount: FixedDiscount) -> Fraction:
    if discount.kind is DiscountKind.PERCENTAGE:
        return price * (1 - Fraction(discount.value) / 100)
    return price - discount.value


def _apply_percent(price: Fraction, percent) -> Fraction:
    return price * (1 - Fraction(percent) / 100)


def _describe_tier(tier: DiscountTier, source: str) -> str:
    return f"{source} {tier.min_quantity}+ units {tier.discount_percent}%"


def compute_unit_price(
    variant: ProductVariant,
    parent: ProductParent | None,
    quantity: int,
    *,
    now: datetime | None = None,
) -> PriceQuote:
    """Compute the final unit price of *variant* when buying *quantity* units.

    Raises ValidationError for non-positive or non-integer quantities.
    """
    qty = Quantity(quantity).value
    if now is None:
        now = datetime.now(timezone.utc)

    price = Fraction(variant.base_price)
    applied: list[str] = []
    applied_tier: DiscountTier | None = None

    if variant.has_own_discount:
        fixed = variant.fixed_discount
        if fixed is not None and fixed.applies_at(now):
            price = _apply_fixed(price, fixed)
            applied.append(fixed.describe())

        tiered = variant.tiered_discount
        if tiered is not None and tiered.applies_at(now):
            tier = tiered.tier_for(qty)
            if tier is not None:
                price = _apply_percent(price, tier.discount_percent)
                applied.append(_describe_tier(tier, "tier"))
                applied_tier = tier
    elif parent is not None and parent.tiered_discount is not None:
        legacy = parent.tiered_discount
        if legacy.applies_at(now):
            tier = legacy.tier_for(qty)
            if tier is not None:
                price = _apply_percent(price, tier.discount_percent)
                applied.append(_describe_tier(tier, "parent tier"))
                applied_tier = tier

    if price < 0:
        price = Fraction(0)

    return PriceQuote(
        original_price=variant.base_price,
        unit_price=round_half_up(price),
        quantity=qty,
        applied_discount_description=" + ".join(applied),
        applied_tier=applied_tier,
    )


def tier_previews(
    variant: ProductVariant, *, limit: int = 2, now: datetime | None = None
) -> list[PriceQuote]:
    """Unit prices at the first *limit* tier thresholds, for catalog badges."""
    if limit <= 0:
        raise ValidationError("Preview limit must be positive")
    if now is None:
        now = datetime.now(timezone.utc)
    tiered = variant.tiered_discount
    if tiered is None or not tiered.applies_at(now):
        return []
    return [
        compute_unit_price(variant, None, tier.min_quantity, now=now)
        for tier in tiered.tiers[:limit]
    ]
