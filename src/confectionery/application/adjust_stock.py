"""Application service: manual stock adjustment and restock use cases.

Staff corrections enter the ledger as ``adjustment`` movements (signed,
never allowed to push stock below zero) and deliveries from suppliers as
``restock`` movements (strictly positive).
"""

from __future__ import annotations

from decimal import Decimal

from confectionery.application.dto import StockMovementDTO
from confectionery.domain.exceptions import EntityNotFoundError, ValidationError
from confectionery.domain.model.stock import MovementType
from confectionery.domain.repository.catalog_repository import CatalogRepository
from confectionery.domain.service.stock_ledger import StockLedger

MIN_REASON_LENGTH = 5


class AdjustStockHandler:

    def __init__(self, catalog_repo: CatalogRepository, ledger: StockLedger) -> None:
        self._catalog_repo = catalog_repo
        self._ledger = ledger

    def handle(
        self,
        variant_id: str,
        quantity: int,
        reason: str,
        notes: str | None = None,
        actor: str | None = None,
    ) -> StockMovementDTO:
        """Apply a signed correction to a variant's stock."""
        _require_variant(self._catalog_repo, variant_id)
        if not reason or len(reason.strip()) < MIN_REASON_LENGTH:
            raise ValidationError(
                f"Adjustment reason must be at least {MIN_REASON_LENGTH} characters"
            )

        movement = self._ledger.increment(
            variant_id,
            quantity,
            MovementType.ADJUSTMENT,
            actor=actor,
            reason=f"Manual adjustment: {reason.strip()}",
            notes=notes,
        )
        return StockMovementDTO.from_movement(movement)


class RestockHandler:

    def __init__(self, catalog_repo: CatalogRepository, ledger: StockLedger) -> None:
        self._catalog_repo = catalog_repo
        self._ledger = ledger

    def handle(
        self,
        variant_id: str,
        quantity: int,
        cost: Decimal | None = None,
        supplier: str | None = None,
        invoice_number: str | None = None,
        notes: str | None = None,
        actor: str | None = None,
    ) -> StockMovementDTO:
        """Receive *quantity* new units of a variant."""
        _require_variant(self._catalog_repo, variant_id)
        if cost is not None and cost <= 0:
            raise ValidationError("Restock cost must be positive")

        metadata: dict[str, str] = {}
        if cost is not None:
            metadata["cost"] = str(cost)
        if supplier:
            metadata["supplier"] = supplier.strip()
        if invoice_number:
            metadata["invoice_number"] = invoice_number.strip()

        movement = self._ledger.increment(
            variant_id,
            quantity,
            MovementType.RESTOCK,
            actor=actor,
            reason="Restock",
            notes=notes,
            metadata=metadata,
        )
        return StockMovementDTO.from_movement(movement)


def _require_variant(catalog_repo: CatalogRepository, variant_id: str) -> None:
    if catalog_repo.get_variant(variant_id) is None:
        raise EntityNotFoundError(f"Variant '{variant_id}' not found")
