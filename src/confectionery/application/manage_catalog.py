"""Application services: catalog maintenance and listing.

Catalog records only carry pricing; stock always comes from the ledger.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from confectionery.application.dto import format_amount
from confectionery.domain.exceptions import EntityNotFoundError, ValidationError
from confectionery.domain.model.catalog import ProductParent, ProductVariant
from confectionery.domain.model.value_objects import FixedDiscount, TieredDiscount
from confectionery.domain.repository.catalog_repository import CatalogRepository
from confectionery.domain.service.discount_engine import compute_unit_price, tier_previews
from confectionery.domain.service.stock_ledger import StockLedger


@dataclass(frozen=True)
class CatalogLineDTO:
    variant_id: str
    sku: str
    name: str
    base_price: str
    unit_price: str
    stock: int
    active: bool
    tier_badges: list[str] = field(default_factory=list)


class AddParentHandler:

    def __init__(self, catalog_repo: CatalogRepository) -> None:
        self._catalog_repo = catalog_repo

    def handle(
        self, parent_id: str, name: str, tiered_discount: TieredDiscount | None = None
    ) -> ProductParent:
        if not parent_id or not name or not name.strip():
            raise ValidationError("Product id and name are required")
        if self._catalog_repo.get_parent(parent_id) is not None:
            raise ValidationError(f"Product '{parent_id}' already exists")

        parent = ProductParent(id=parent_id, name=name.strip(), tiered_discount=tiered_discount)
        self._catalog_repo.save_parent(parent)
        return parent


class AddVariantHandler:

    def __init__(
        self, catalog_repo: CatalogRepository, default_low_stock_threshold: int = 5
    ) -> None:
        self._catalog_repo = catalog_repo
        self._default_threshold = default_low_stock_threshold

    def handle(
        self,
        variant_id: str,
        sku: str,
        name: str,
        parent_id: str,
        price: int,
        fixed_discount: FixedDiscount | None = None,
        tiered_discount: TieredDiscount | None = None,
        low_stock_threshold: int | None = None,
    ) -> ProductVariant:
        """Add a new variant. It starts with zero stock."""
        if self._catalog_repo.get_parent(parent_id) is None:
            raise EntityNotFoundError(f"Product '{parent_id}' not found")
        if self._catalog_repo.get_variant(variant_id) is not None:
            raise ValidationError(f"Variant '{variant_id}' already exists")
        if any(v.sku == sku for v in self._catalog_repo.list_variants()):
            raise ValidationError(f"SKU '{sku}' is already in use")

        variant = ProductVariant(
            id=variant_id,
            sku=sku,
            name=name.strip(),
            parent_id=parent_id,
            base_price=price,
            fixed_discount=fixed_discount,
            tiered_discount=tiered_discount,
            low_stock_threshold=(
                self._default_threshold if low_stock_threshold is None else low_stock_threshold
            ),
        )
        self._catalog_repo.save_variant(variant)
        return variant


class UpdatePriceHandler:

    def __init__(self, catalog_repo: CatalogRepository) -> None:
        self._catalog_repo = catalog_repo

    def handle(self, variant_id: str, new_price: int) -> None:
        """Update a variant's base price.

        Existing orders keep the prices they snapshotted at creation.
        """
        variant = self._catalog_repo.get_variant(variant_id)
        if variant is None:
            raise EntityNotFoundError(f"Variant '{variant_id}' not found")
        variant.update_price(new_price)
        self._catalog_repo.save_variant(variant)


class ListCatalogHandler:

    def __init__(
        self, catalog_repo: CatalogRepository, ledger: StockLedger, currency: str = "PYG"
    ) -> None:
        self._catalog_repo = catalog_repo
        self._ledger = ledger
        self._currency = currency

    def handle(self) -> list[CatalogLineDTO]:
        lines: list[CatalogLineDTO] = []
        for variant in sorted(self._catalog_repo.list_variants(), key=lambda v: v.sku):
            parent = self._catalog_repo.get_parent(variant.parent_id)
            single = compute_unit_price(variant, parent, 1)
            badges = [
                f"{q.quantity}+ @ {format_amount(q.unit_price, self._currency)}"
                for q in tier_previews(variant)
            ]
            lines.append(
                CatalogLineDTO(
                    variant_id=variant.id,
                    sku=variant.sku,
                    name=variant.name,
                    base_price=format_amount(variant.base_price, self._currency),
                    unit_price=format_amount(single.unit_price, self._currency),
                    stock=self._ledger.current_stock(variant.id),
                    active=variant.active,
                    tier_badges=badges,
                )
            )
        return lines
