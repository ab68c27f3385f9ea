"""Composition root: wires concrete implementations to domain interfaces.

This is the only place in the codebase that knows about *all* layers.
Every other module depends only on abstractions.
"""

from __future__ import annotations

from pathlib import Path

from confectionery.application.low_stock_monitor import LowStockMonitor
from confectionery.application.order_orchestrator import OrderOrchestrator
from confectionery.config import get_settings
from confectionery.domain.events import EventBus
from confectionery.domain.service.stock_ledger import StockLedger
from confectionery.infrastructure.persistence.json_catalog_repository import (
    JsonCatalogRepository,
)
from confectionery.infrastructure.persistence.json_order_repository import (
    JsonOrderRepository,
)
from confectionery.infrastructure.persistence.json_stock_movement_repository import (
    JsonStockMovementRepository,
)


def _data_dir() -> Path:
    return get_settings().data_dir


def catalog_repository() -> JsonCatalogRepository:
    return JsonCatalogRepository(_data_dir() / "catalog.json")


def order_repository() -> JsonOrderRepository:
    return JsonOrderRepository(_data_dir() / "orders.json")


def stock_movement_repository() -> JsonStockMovementRepository:
    return JsonStockMovementRepository(_data_dir() / "stock_movements.json")


def event_bus() -> EventBus:
    events = EventBus()
    LowStockMonitor(catalog_repository(), events)
    return events


def stock_ledger(events: EventBus | None = None) -> StockLedger:
    settings = get_settings()
    return StockLedger(
        stock_movement_repository(),
        events if events is not None else event_bus(),
        max_attempts=settings.ledger_max_attempts,
        backoff_base=settings.ledger_backoff_base,
    )


def order_orchestrator() -> OrderOrchestrator:
    settings = get_settings()
    events = event_bus()
    return OrderOrchestrator(
        order_repository(),
        catalog_repository(),
        stock_ledger(events),
        events,
        order_number_prefix=settings.order_number_prefix,
        currency=settings.currency,
        whatsapp_phone=settings.whatsapp_business_phone,
    )
