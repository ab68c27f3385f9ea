"""Integration tests for staff-driven status changes."""

from collections.abc import Callable
from datetime import datetime, timezone

import pytest

from confectionery.application.dto import PlaceOrderRequest
from confectionery.application.order_orchestrator import OrderOrchestrator
from confectionery.domain.exceptions import (
    ConcurrencyConflict,
    EntityNotFoundError,
    InvalidTransition,
    ValidationError,
)
from confectionery.domain.model.catalog import ProductVariant
from confectionery.domain.model.order import CustomerInfo, Order, OrderStatus
from confectionery.domain.model.stock import MovementType
from confectionery.domain.service.cart_validator import CartLineRequest
from confectionery.domain.service.stock_ledger import StockLedger
from tests.fakes import (
    FakeCatalogRepository,
    FakeOrderRepository,
    FakeStockMovementRepository,
)

NOW = datetime(2026, 3, 14, 15, 0, tzinfo=timezone.utc)
LATER = datetime(2026, 3, 14, 15, 5, tzinfo=timezone.utc)


class RacingOrderRepository(FakeOrderRepository):
    """Lets another writer change the order just before our next save."""

    def __init__(self) -> None:
        super().__init__()
        self.rival: Callable[[Order], None] | None = None

    def save(
        self,
        order: Order,
        expected_status: OrderStatus,
        expected_updated_at: datetime | None = None,
    ) -> None:
        if self.rival is not None:
            rival, self.rival = self.rival, None
            stored = self.get_by_number(order.order_number)
            previous = stored.status
            rival(stored)
            super().save(stored, expected_status=previous)
        super().save(order, expected_status, expected_updated_at)


def _cancel(order: Order) -> None:
    order.status = OrderStatus.CANCELLED


def _edit_shipping(order: Order) -> None:
    order.set_shipping_cost(9000)
    order.updated_at = LATER


def _setup(orders=None):
    catalog = FakeCatalogRepository(
        variants=[ProductVariant(id="v1", sku="ALF-01", name="Alfajor", parent_id="p1", base_price=3000)]
    )
    movements = FakeStockMovementRepository()
    ledger = StockLedger(movements, backoff_base=0)
    ledger.increment("v1", 10, MovementType.RESTOCK)
    orders = orders or FakeOrderRepository()
    orchestrator = OrderOrchestrator(orders, catalog, ledger, clock=lambda: NOW)
    placed = orchestrator.create_order(
        PlaceOrderRequest(
            customer=CustomerInfo(name="Ana", email="ana@example.com", phone="0981"),
            items=[CartLineRequest("v1", 2)],
        )
    )
    return orchestrator, orders, movements, placed.order.order_number


class TestConfirmOrder:

    def test_confirm_sets_shipping_and_timestamp(self):
        orchestrator, orders, _, number = _setup()
        dto = orchestrator.confirm_order(number, shipping_cost=15000, admin_notes="Paid", actor="staff")
        assert dto.status == "confirmed"
        assert dto.total == "21.000 PYG"
        saved = orders.get_by_number(number)
        assert saved.confirmed_at == NOW
        assert saved.admin_notes == "Paid"

    def test_confirm_twice_rejected(self):
        orchestrator, *_, number = _setup()
        orchestrator.confirm_order(number)
        with pytest.raises(InvalidTransition):
            orchestrator.confirm_order(number)

    def test_negative_shipping_rejected(self):
        orchestrator, *_, number = _setup()
        with pytest.raises(ValidationError):
            orchestrator.confirm_order(number, shipping_cost=-1)

    def test_unknown_order(self):
        orchestrator, *_ = _setup()
        with pytest.raises(EntityNotFoundError):
            orchestrator.confirm_order("QUE-20260314-999")


class TestUpdateStatus:

    def test_full_happy_path(self):
        orchestrator, orders, movements, number = _setup()
        orchestrator.confirm_order(number)
        for status in (OrderStatus.PREPARING, OrderStatus.SHIPPED, OrderStatus.COMPLETED):
            orchestrator.update_status(number, status)
        saved = orders.get_by_number(number)
        assert saved.status is OrderStatus.COMPLETED
        assert saved.completed_at == NOW
        assert len(movements.list_by_order(number)) == 1

    def test_cannot_skip_steps(self):
        orchestrator, *_, number = _setup()
        with pytest.raises(InvalidTransition):
            orchestrator.update_status(number, OrderStatus.SHIPPED)

    @pytest.mark.parametrize("target", list(OrderStatus))
    def test_completed_is_terminal(self, target):
        orchestrator, *_, number = _setup()
        orchestrator.confirm_order(number)
        for status in (OrderStatus.PREPARING, OrderStatus.SHIPPED, OrderStatus.COMPLETED):
            orchestrator.update_status(number, status)
        with pytest.raises(InvalidTransition):
            orchestrator.update_status(number, target, reason="any")

    def test_concurrent_change_is_detected(self):
        orders = RacingOrderRepository()
        orchestrator, _, _, number = _setup(orders)
        orders.rival = _cancel
        with pytest.raises(InvalidTransition) as exc_info:
            orchestrator.confirm_order(number)
        assert exc_info.value.current == "cancelled"
        assert orders.get_by_number(number).status is OrderStatus.CANCELLED


class TestOrderDetails:

    def test_mark_whatsapp_sent(self):
        orchestrator, orders, _, number = _setup()
        dto = orchestrator.mark_whatsapp_sent(number, "wamid.123")
        assert dto.whatsapp_sent
        saved = orders.get_by_number(number)
        assert saved.whatsapp_message_id == "wamid.123"
        assert saved.whatsapp_sent_at == NOW

    def test_shipping_cost_update(self):
        orchestrator, *_, number = _setup()
        dto = orchestrator.update_shipping_cost(number, 5000, actor="staff")
        assert dto.shipping_cost == "5.000 PYG"

    def test_shipping_cost_frozen_on_terminal_orders(self):
        orchestrator, *_, number = _setup()
        orchestrator.cancel_order(number, "Customer changed their mind")
        with pytest.raises(ValidationError):
            orchestrator.update_shipping_cost(number, 5000)

    def test_field_edits_do_not_overwrite_each_other(self):
        orders = RacingOrderRepository()
        orchestrator, _, _, number = _setup(orders)
        orders.rival = _edit_shipping
        with pytest.raises(ConcurrencyConflict):
            orchestrator.mark_whatsapp_sent(number, "wamid.123")
        saved = orders.get_by_number(number)
        assert saved.shipping_cost == 9000
        assert not saved.whatsapp_sent

    def test_shipping_update_detects_concurrent_edit(self):
        orders = RacingOrderRepository()
        orchestrator, _, _, number = _setup(orders)
        orders.rival = _edit_shipping
        with pytest.raises(ConcurrencyConflict):
            orchestrator.update_shipping_cost(number, 5000)
        assert orders.get_by_number(number).shipping_cost == 9000
