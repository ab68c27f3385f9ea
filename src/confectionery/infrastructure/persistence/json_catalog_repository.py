"""JSON-file-backed implementation of CatalogRepository.

File layout: ``{"parents": [...], "variants": [...]}``.
"""

from __future__ import annotations

from pathlib import Path

from confectionery.domain.model.catalog import ProductParent, ProductVariant
from confectionery.domain.model.value_objects import (
    DiscountKind,
    DiscountTier,
    FixedDiscount,
    TieredDiscount,
    to_percent,
)
from confectionery.domain.repository.catalog_repository import CatalogRepository
from confectionery.infrastructure.persistence._json_file import (
    dt_from_raw,
    dt_to_raw,
    ensure_file,
    lock_for,
    read_json,
    write_json,
)


class JsonCatalogRepository(CatalogRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._lock = lock_for(file_path)
        ensure_file(file_path, {"parents": [], "variants": []})

    # --- CatalogRepository interface ------------------------------------------

    def get_variant(self, variant_id: str) -> ProductVariant | None:
        for raw in self._load()["variants"]:
            if raw["id"] == variant_id:
                return self._variant_to_domain(raw)
        return None

    def get_parent(self, parent_id: str) -> ProductParent | None:
        for raw in self._load()["parents"]:
            if raw["id"] == parent_id:
                return self._parent_to_domain(raw)
        return None

    def list_variants(self) -> list[ProductVariant]:
        return [self._variant_to_domain(raw) for raw in self._load()["variants"]]

    def save_variant(self, variant: ProductVariant) -> None:
        self._upsert("variants", self._variant_to_raw(variant))

    def save_parent(self, parent: ProductParent) -> None:
        self._upsert("parents", self._parent_to_raw(parent))

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _fixed_to_raw(discount: FixedDiscount | None) -> dict | None:
        if discount is None:
            return None
        return {
            "type": discount.kind.value,
            "value": str(discount.value),
            "enabled": discount.enabled,
            "startDate": dt_to_raw(discount.starts_at),
            "endDate": dt_to_raw(discount.ends_at),
        }

    @staticmethod
    def _fixed_to_domain(raw: dict | None) -> FixedDiscount | None:
        if raw is None:
            return None
        kind = DiscountKind(raw["type"])
        value = to_percent(raw["value"]) if kind is DiscountKind.PERCENTAGE else int(raw["value"])
        return FixedDiscount(
            kind=kind,
            value=value,
            enabled=raw.get("enabled", True),
            starts_at=dt_from_raw(raw.get("startDate")),
            ends_at=dt_from_raw(raw.get("endDate")),
        )

    @staticmethod
    def _tiered_to_raw(discount: TieredDiscount | None) -> dict | None:
        if discount is None:
            return None
        return {
            "active": discount.active,
            "startDate": dt_to_raw(discount.starts_at),
            "endDate": dt_to_raw(discount.ends_at),
            "badge": discount.badge,
            "tiers": [
                {
                    "minQuantity": tier.min_quantity,
                    "maxQuantity": tier.max_quantity,
                    "discountPercent": str(tier.discount_percent),
                }
                for tier in discount.tiers
            ],
        }

    @staticmethod
    def _tiered_to_domain(raw: dict | None) -> TieredDiscount | None:
        if raw is None:
            return None
        return TieredDiscount(
            tiers=tuple(
                DiscountTier(
                    min_quantity=tier["minQuantity"],
                    discount_percent=to_percent(tier["discountPercent"]),
                    max_quantity=tier.get("maxQuantity"),
                )
                for tier in raw["tiers"]
            ),
            active=raw.get("active", True),
            starts_at=dt_from_raw(raw.get("startDate")),
            ends_at=dt_from_raw(raw.get("endDate")),
            badge=raw.get("badge"),
        )

    def _variant_to_raw(self, variant: ProductVariant) -> dict:
        return {
            "id": variant.id,
            "sku": variant.sku,
            "name": variant.name,
            "parentId": variant.parent_id,
            "price": variant.base_price,
            "fixedDiscount": self._fixed_to_raw(variant.fixed_discount),
            "tieredDiscount": self._tiered_to_raw(variant.tiered_discount),
            "lowStockThreshold": variant.low_stock_threshold,
            "active": variant.active,
        }

    def _variant_to_domain(self, raw: dict) -> ProductVariant:
        return ProductVariant(
            id=raw["id"],
            sku=raw["sku"],
            name=raw["name"],
            parent_id=raw["parentId"],
            base_price=raw["price"],
            fixed_discount=self._fixed_to_domain(raw.get("fixedDiscount")),
            tiered_discount=self._tiered_to_domain(raw.get("tieredDiscount")),
            low_stock_threshold=raw.get("lowStockThreshold", 5),
            active=raw.get("active", True),
        )

    def _parent_to_raw(self, parent: ProductParent) -> dict:
        return {
            "id": parent.id,
            "name": parent.name,
            "tieredDiscount": self._tiered_to_raw(parent.tiered_discount),
        }

    def _parent_to_domain(self, raw: dict) -> ProductParent:
        return ProductParent(
            id=raw["id"],
            name=raw["name"],
            tiered_discount=self._tiered_to_domain(raw.get("tieredDiscount")),
        )

    # --- File helpers ---------------------------------------------------------

    def _load(self) -> dict:
        with self._lock:
            return read_json(self._file_path)

    def _upsert(self, section: str, record: dict) -> None:
        with self._lock:
            data = read_json(self._file_path)
            records = data.setdefault(section, [])
            for i, raw in enumerate(records):
                if raw["id"] == record["id"]:
                    records[i] = record
                    break
            else:
                records.append(record)
            write_json(self._file_path, data)
