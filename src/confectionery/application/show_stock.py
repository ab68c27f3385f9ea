"""Application services: stock queries (read-only)."""

from __future__ import annotations

from confectionery.application.dto import MovementPageDTO, StockLevelDTO, StockMovementDTO
from confectionery.domain.exceptions import EntityNotFoundError
from confectionery.domain.model.stock import MovementType
from confectionery.domain.repository.catalog_repository import CatalogRepository
from confectionery.domain.service.stock_ledger import StockLedger


class ListStockMovementsHandler:

    def __init__(self, catalog_repo: CatalogRepository, ledger: StockLedger) -> None:
        self._catalog_repo = catalog_repo
        self._ledger = ledger

    def by_variant(self, variant_id: str, limit: int = 50) -> list[StockMovementDTO]:
        if self._catalog_repo.get_variant(variant_id) is None:
            raise EntityNotFoundError(f"Variant '{variant_id}' not found")
        return [
            StockMovementDTO.from_movement(m)
            for m in self._ledger.history(variant_id, limit)
        ]

    def by_order(self, order_number: str) -> list[StockMovementDTO]:
        return [
            StockMovementDTO.from_movement(m)
            for m in self._ledger.movements_for_order(order_number)
        ]

    def page(
        self,
        movement_type: MovementType | None = None,
        page: int = 1,
        limit: int = 100,
    ) -> MovementPageDTO:
        result = self._ledger.list_movements(movement_type, page=page, limit=limit)
        return MovementPageDTO(
            movements=[StockMovementDTO.from_movement(m) for m in result.items],
            page=result.page,
            limit=result.limit,
            total=result.total,
            total_pages=result.total_pages,
        )


class ShowStockLevelsHandler:

    def __init__(self, catalog_repo: CatalogRepository, ledger: StockLedger) -> None:
        self._catalog_repo = catalog_repo
        self._ledger = ledger

    def handle(self) -> list[StockLevelDTO]:
        return [self._level(v) for v in self._catalog_repo.list_variants()]

    def low_stock(self, limit: int = 50) -> list[StockLevelDTO]:
        """Active variants at or below their threshold, lowest stock first.

        Sold-out variants are included.
        """
        levels = [
            self._level(v)
            for v in self._catalog_repo.list_variants()
            if v.active
        ]
        low = [lvl for lvl in levels if lvl.stock <= lvl.low_stock_threshold]
        return sorted(low, key=lambda lvl: (lvl.stock, lvl.sku))[:limit]

    def _level(self, variant) -> StockLevelDTO:
        return StockLevelDTO(
            variant_id=variant.id,
            sku=variant.sku,
            name=variant.name,
            stock=self._ledger.current_stock(variant.id),
            low_stock_threshold=variant.low_stock_threshold,
        )
