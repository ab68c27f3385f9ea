"""Event handler: announce variants that drop to their low-stock threshold."""

from __future__ import annotations

from confectionery.config import get_logger
from confectionery.domain.events import EventBus, LowStockReached, StockMovementRecorded
from confectionery.domain.repository.catalog_repository import CatalogRepository

logger = get_logger(__name__)


class LowStockMonitor:
    """Subscribes to ledger events; publishes LowStockReached on downward crossings."""

    def __init__(self, catalog_repo: CatalogRepository, events: EventBus) -> None:
        self._catalog_repo = catalog_repo
        self._events = events
        events.subscribe(StockMovementRecorded, self.on_movement)

    def on_movement(self, event: StockMovementRecorded) -> None:
        movement = event.movement
        if movement.quantity_delta >= 0:
            return
        variant = self._catalog_repo.get_variant(movement.variant_id)
        if variant is None:
            return
        threshold = variant.low_stock_threshold
        if movement.new_stock <= threshold < movement.previous_stock:
            logger.warning(
                "low_stock_reached",
                variant_id=variant.id,
                sku=variant.sku,
                stock=movement.new_stock,
                threshold=threshold,
            )
            self._events.publish(
                LowStockReached(
                    variant_id=variant.id,
                    stock=movement.new_stock,
                    threshold=threshold,
                )
            )
