"""Integration tests for manual adjustments, restocks and stock queries."""

from decimal import Decimal

import pytest

from confectionery.application.adjust_stock import AdjustStockHandler, RestockHandler
from confectionery.application.show_stock import (
    ListStockMovementsHandler,
    ShowStockLevelsHandler,
)
from confectionery.domain.exceptions import (
    EntityNotFoundError,
    InsufficientStock,
    ValidationError,
)
from confectionery.domain.model.catalog import ProductVariant
from confectionery.domain.model.stock import MovementType
from confectionery.domain.service.stock_ledger import StockLedger
from tests.fakes import FakeCatalogRepository, FakeStockMovementRepository


def _setup():
    catalog = FakeCatalogRepository(
        variants=[
            ProductVariant(
                id="v1", sku="ALF-01", name="Alfajor", parent_id="p1",
                base_price=3000, low_stock_threshold=5,
            ),
            ProductVariant(
                id="v2", sku="TRF-06", name="Trufas x6", parent_id="p1",
                base_price=12000, low_stock_threshold=2,
            ),
            ProductVariant(
                id="v3", sku="OLD-01", name="Retired", parent_id="p1",
                base_price=1000, active=False,
            ),
        ]
    )
    ledger = StockLedger(FakeStockMovementRepository(), backoff_base=0)
    return catalog, ledger


class TestAdjustStock:

    def test_positive_and_negative_adjustments(self):
        catalog, ledger = _setup()
        handler = AdjustStockHandler(catalog, ledger)
        handler.handle("v1", 10, "Initial count")
        dto = handler.handle("v1", -3, "Broken in transit", actor="staff")
        assert (dto.previous_stock, dto.new_stock) == (10, 7)
        assert dto.type == "adjustment"
        assert dto.reason == "Manual adjustment: Broken in transit"
        assert dto.actor == "staff"

    def test_cannot_adjust_below_zero(self):
        catalog, ledger = _setup()
        handler = AdjustStockHandler(catalog, ledger)
        handler.handle("v1", 2, "Initial count")
        with pytest.raises(InsufficientStock):
            handler.handle("v1", -3, "Inventory count")
        assert ledger.current_stock("v1") == 2

    def test_short_reason_rejected(self):
        catalog, ledger = _setup()
        with pytest.raises(ValidationError, match="at least"):
            AdjustStockHandler(catalog, ledger).handle("v1", 1, "oops")

    def test_unknown_variant(self):
        catalog, ledger = _setup()
        with pytest.raises(EntityNotFoundError):
            AdjustStockHandler(catalog, ledger).handle("ghost", 1, "Initial count")


class TestRestock:

    def test_restock_records_metadata(self):
        catalog, ledger = _setup()
        dto = RestockHandler(catalog, ledger).handle(
            "v1", 24, cost=Decimal("180000"), supplier=" Dulces SA ", invoice_number="F-001"
        )
        assert dto.new_stock == 24
        movement = ledger.history("v1")[0]
        assert movement.type is MovementType.RESTOCK
        assert movement.metadata == {
            "cost": "180000",
            "supplier": "Dulces SA",
            "invoice_number": "F-001",
        }

    @pytest.mark.parametrize("quantity", [0, -5])
    def test_quantity_must_be_positive(self, quantity):
        catalog, ledger = _setup()
        with pytest.raises(ValidationError):
            RestockHandler(catalog, ledger).handle("v1", quantity)

    def test_cost_must_be_positive(self):
        catalog, ledger = _setup()
        with pytest.raises(ValidationError):
            RestockHandler(catalog, ledger).handle("v1", 5, cost=Decimal("0"))


class TestStockQueries:

    def test_low_stock_report(self):
        catalog, ledger = _setup()
        ledger.increment("v1", 3, MovementType.RESTOCK)
        ledger.increment("v2", 9, MovementType.RESTOCK)
        levels = ShowStockLevelsHandler(catalog, ledger).low_stock()
        # v3 is inactive and v2 is above its threshold
        assert [(lvl.variant_id, lvl.stock) for lvl in levels] == [("v1", 3)]

    def test_sold_out_listed_first(self):
        catalog, ledger = _setup()
        ledger.increment("v1", 3, MovementType.RESTOCK)
        levels = ShowStockLevelsHandler(catalog, ledger).low_stock()
        assert [lvl.variant_id for lvl in levels] == ["v2", "v1"]

    def test_movements_by_order_and_page(self):
        catalog, ledger = _setup()
        ledger.increment("v1", 10, MovementType.RESTOCK)
        ledger.decrement("v1", 2, "QUE-20260314-001")
        handler = ListStockMovementsHandler(catalog, ledger)

        by_order = handler.by_order("QUE-20260314-001")
        assert [m.type for m in by_order] == ["sale"]

        page = handler.page(MovementType.RESTOCK)
        assert page.total == 1
        assert page.movements[0].quantity == 10

    def test_movements_for_unknown_variant(self):
        catalog, ledger = _setup()
        with pytest.raises(EntityNotFoundError):
            ListStockMovementsHandler(catalog, ledger).by_variant("ghost")
