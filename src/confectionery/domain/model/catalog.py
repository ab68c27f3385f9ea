"""Catalog aggregates: product parents and their sellable variants.

Variants carry pricing only. On-hand stock is never stored here; it is
derived from the stock ledger.
"""

from __future__ import annotations

from dataclasses import dataclass

from confectionery.domain.exceptions import ValidationError
from confectionery.domain.model.value_objects import FixedDiscount, TieredDiscount


@dataclass
class ProductParent:
    """Groups variants. Its tiered discount is the legacy fallback."""

    id: str
    name: str
    tiered_discount: TieredDiscount | None = None


@dataclass
class ProductVariant:
    """A sellable SKU.

    ``base_price`` is in minor currency units.
    """

    id: str
    sku: str
    name: str
    parent_id: str
    base_price: int
    fixed_discount: FixedDiscount | None = None
    tiered_discount: TieredDiscount | None = None
    low_stock_threshold: int = 5
    active: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.base_price, bool) or not isinstance(self.base_price, int):
            raise ValidationError("Variant base price must be an integer")
        if self.base_price < 0:
            raise ValidationError("Variant base price cannot be negative")
        if self.low_stock_threshold < 0:
            raise ValidationError("Low stock threshold cannot be negative")

    @property
    def has_own_discount(self) -> bool:
        """True when the variant configures any discount, active or not."""
        return self.fixed_discount is not None or self.tiered_discount is not None

    def update_price(self, new_price: int) -> None:
        """Change the base price.

        Existing orders are unaffected: they snapshot prices at creation.
        """
        if isinstance(new_price, bool) or not isinstance(new_price, int) or new_price < 0:
            raise ValidationError("Variant base price must be a non-negative integer")
        self.base_price = new_price
