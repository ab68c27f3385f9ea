"""Domain service: Cart Validator (anti-fraud re-pricing).

Re-derives every price of a client-submitted cart on the server and
compares it, exactly, with what the client claims. Read-only: it never
touches stock and needs no locking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from confectionery.domain.exceptions import PriceMismatch, ValidationError
from confectionery.domain.repository.catalog_repository import CatalogRepository
from confectionery.domain.service.discount_engine import PriceQuote, compute_unit_price

PRICE_MISMATCH = "price_mismatch"
UNKNOWN_VARIANT = "unknown_variant"


@dataclass(frozen=True)
class CartLineRequest:
    """Untrusted cart line as submitted by the client."""

    variant_id: str
    quantity: int
    client_final_price: int | None = None
    client_subtotal: int | None = None


@dataclass(frozen=True)
class PricedLine:
    variant_id: str
    quantity: int
    original_price: int
    unit_price: int
    total_discount: int
    subtotal: int
    applied_discount: str = ""

    @staticmethod
    def from_quote(variant_id: str, quote: PriceQuote) -> PricedLine:
        return PricedLine(
            variant_id=variant_id,
            quantity=quote.quantity,
            original_price=quote.original_price,
            unit_price=quote.unit_price,
            total_discount=quote.total_discount,
            subtotal=quote.subtotal,
            applied_discount=quote.applied_discount_description,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "variantId": self.variant_id,
            "quantity": self.quantity,
            "originalPrice": self.original_price,
            "finalPricePerUnit": self.unit_price,
            "totalDiscount": self.total_discount,
            "subtotal": self.subtotal,
            "appliedDiscount": self.applied_discount,
        }


@dataclass(frozen=True)
class Discrepancy:
    variant_id: str
    reason: str
    client_final_price: int | None
    client_subtotal: int | None
    server_final_price: int | None = None
    server_subtotal: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "variantId": self.variant_id,
            "reason": self.reason,
            "client": {
                "finalPrice": self.client_final_price,
                "subtotal": self.client_subtotal,
            },
            "server": {
                "finalPrice": self.server_final_price,
                "subtotal": self.server_subtotal,
            },
        }


@dataclass(frozen=True)
class CartValidationResult:
    valid: bool
    server_prices: list[PricedLine] = field(default_factory=list)
    discrepancies: list[Discrepancy] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "valid": self.valid,
            "serverPrices": [line.to_dict() for line in self.server_prices],
        }
        if self.discrepancies:
            payload["discrepancies"] = [d.to_dict() for d in self.discrepancies]
        return payload


class CartValidator:

    def __init__(self, catalog: CatalogRepository) -> None:
        self._catalog = catalog

    def validate(
        self, lines: list[CartLineRequest], *, now: datetime | None = None
    ) -> CartValidationResult:
        """Re-price every line and report where the client disagrees.

        ``valid`` is True only if every line's unit price and subtotal match
        exactly. Unknown or inactive variants are discrepancies, never
        silently dropped.
        """
        if not lines:
            raise ValidationError("Cart is empty")

        server_prices: list[PricedLine] = []
        discrepancies: list[Discrepancy] = []

        for line in lines:
            priced = self._price_line(line.variant_id, line.quantity, now)
            if priced is None:
                discrepancies.append(
                    Discrepancy(
                        variant_id=line.variant_id,
                        reason=UNKNOWN_VARIANT,
                        client_final_price=line.client_final_price,
                        client_subtotal=line.client_subtotal,
                    )
                )
                continue

            server_prices.append(priced)
            if (
                line.client_final_price != priced.unit_price
                or line.client_subtotal != priced.subtotal
            ):
                discrepancies.append(
                    Discrepancy(
                        variant_id=line.variant_id,
                        reason=PRICE_MISMATCH,
                        client_final_price=line.client_final_price,
                        client_subtotal=line.client_subtotal,
                        server_final_price=priced.unit_price,
                        server_subtotal=priced.subtotal,
                    )
                )

        return CartValidationResult(
            valid=not discrepancies,
            server_prices=server_prices,
            discrepancies=discrepancies,
        )

    def price_cart(
        self, items: list[tuple[str, int]], *, now: datetime | None = None
    ) -> list[PricedLine]:
        """Price ``(variant_id, quantity)`` pairs with no client prices involved.

        Raises PriceMismatch if any variant is unknown.
        """
        if not items:
            raise ValidationError("Cart is empty")

        priced: list[PricedLine] = []
        missing: list[Discrepancy] = []
        for variant_id, quantity in items:
            line = self._price_line(variant_id, quantity, now)
            if line is None:
                missing.append(Discrepancy(variant_id, UNKNOWN_VARIANT, None, None))
            else:
                priced.append(line)

        if missing:
            raise PriceMismatch(
                "Cart references unknown variants: "
                + ", ".join(d.variant_id for d in missing),
                discrepancies=missing,
                server_prices=priced,
            )
        return priced

    def _price_line(
        self, variant_id: str, quantity: int, now: datetime | None
    ) -> PricedLine | None:
        variant = self._catalog.get_variant(variant_id)
        if variant is None or not variant.active:
            return None
        parent = self._catalog.get_parent(variant.parent_id)
        quote = compute_unit_price(variant, parent, quantity, now=now)
        return PricedLine.from_quote(variant.id, quote)
