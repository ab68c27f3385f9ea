"""Domain service: Stock Ledger.

The ledger is the only source of truth for on-hand stock. Every change is
an immutable StockMovement appended through the repository's atomic
conditional write; current stock is the sum of all deltas.

Concurrency: each mutation reads the current stock, builds a movement
from it and asks the repository to commit it only if the stock has not
moved since (optimistic check). Losers re-read and try again, a bounded
number of times, then fail with ConcurrencyConflict. Two writers can
therefore never both see "enough stock" and both commit.
"""

from __future__ import annotations

import random
import time
from collections.abc import Callable
from typing import Any

from confectionery.config import get_logger
from confectionery.domain.events import EventBus, StockMovementRecorded
from confectionery.domain.exceptions import (
    ConcurrencyConflict,
    InsufficientStock,
    MovementNotFound,
    ValidationError,
)
from confectionery.domain.model.stock import MovementType, StockMovement
from confectionery.domain.model.value_objects import Page
from confectionery.domain.repository.stock_movement_repository import (
    StaleStockError,
    StockMovementRepository,
)

logger = get_logger(__name__)

DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BACKOFF_BASE = 0.01


class StockLedger:

    def __init__(
        self,
        movements: StockMovementRepository,
        events: EventBus | None = None,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._movements = movements
        self._events = events
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base
        self._sleep = sleep

    # --- Reads ----------------------------------------------------------------

    def current_stock(self, variant_id: str) -> int:
        return self._movements.current_stock(variant_id)

    def history(self, variant_id: str, limit: int = 50) -> list[StockMovement]:
        """Most recent movements for a variant, newest first."""
        return list(reversed(self._movements.list_by_variant(variant_id)))[:limit]

    def movements_for_order(self, order_id: str) -> list[StockMovement]:
        return self._movements.list_by_order(order_id)

    def list_movements(
        self,
        movement_type: MovementType | None = None,
        page: int = 1,
        limit: int = 100,
    ) -> Page:
        """Paginated ledger listing, newest first."""
        if page < 1 or limit < 1:
            raise ValidationError("Page and limit must be positive")
        movements = list(reversed(self._movements.list_all(movement_type)))
        start = (page - 1) * limit
        return Page(
            items=movements[start:start + limit],
            page=page,
            limit=limit,
            total=len(movements),
        )

    # --- Mutations ------------------------------------------------------------

    def decrement(
        self,
        variant_id: str,
        quantity: int,
        order_id: str,
        *,
        actor: str | None = None,
    ) -> StockMovement:
        """Record a sale of *quantity* units for *order_id*.

        Succeeds only if the stock covers the quantity at commit time.
        Retrying for an (order, variant) pair that already has a sale
        returns the existing movement instead of selling twice.
        """
        _require_positive(quantity, "Sale quantity")
        if not order_id:
            raise ValidationError("A sale must reference an order")

        return self._commit(
            variant_id,
            MovementType.SALE,
            lambda current: -quantity,
            order_id=order_id,
            actor=actor,
            reason=f"Sale - order {order_id}",
            existing=lambda: self._movements.find(order_id, variant_id, MovementType.SALE),
        )

    def increment(
        self,
        variant_id: str,
        quantity: int,
        movement_type: MovementType,
        *,
        order_id: str | None = None,
        actor: str | None = None,
        reason: str | None = None,
        notes: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> StockMovement:
        """Record a non-sale movement; *quantity* is the signed delta.

        restock and return must be positive, damage negative, adjustment
        non-zero. Negative deltas are checked against the stock exactly
        like a sale.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValidationError("Movement quantity must be an integer")
        if movement_type is MovementType.SALE:
            raise ValidationError("Sales are recorded with decrement()")
        if movement_type in (MovementType.RESTOCK, MovementType.RETURN):
            _require_positive(quantity, f"{movement_type.value.capitalize()} quantity")
        elif movement_type is MovementType.DAMAGE:
            if quantity >= 0:
                raise ValidationError("Damage write-offs must have a negative quantity")
        elif quantity == 0:
            raise ValidationError("Adjustment quantity cannot be zero")

        return self._commit(
            variant_id,
            movement_type,
            lambda current: quantity,
            order_id=order_id,
            actor=actor,
            reason=reason or _default_reason(movement_type),
            notes=notes,
            metadata=metadata,
        )

    def adjust_to(
        self,
        variant_id: str,
        new_stock: int,
        reason: str,
        *,
        actor: str | None = None,
        notes: str | None = None,
    ) -> StockMovement:
        """Bring the stock to an absolute count with one adjustment movement."""
        if isinstance(new_stock, bool) or not isinstance(new_stock, int) or new_stock < 0:
            raise ValidationError("Stock cannot be negative")
        if not reason or not reason.strip():
            raise ValidationError("A reason is required for stock adjustments")

        def delta_for(current: int) -> int:
            if new_stock == current:
                raise ValidationError("New stock equals the current stock")
            return new_stock - current

        return self._commit(
            variant_id,
            MovementType.ADJUSTMENT,
            delta_for,
            actor=actor,
            reason=f"Manual adjustment: {reason.strip()}",
            notes=notes,
        )

    def reverse_sale(
        self,
        order_id: str,
        variant_id: str,
        *,
        actor: str | None = None,
        reason: str | None = None,
    ) -> StockMovement:
        """Append a return that cancels the sale for (order, variant).

        Raises MovementNotFound if no sale was recorded. Reversing twice
        returns the first return movement and appends nothing.
        """
        sale = self._movements.find(order_id, variant_id, MovementType.SALE)
        if sale is None:
            raise MovementNotFound(order_id, variant_id)

        return self._commit(
            variant_id,
            MovementType.RETURN,
            lambda current: -sale.quantity_delta,
            order_id=order_id,
            actor=actor,
            reason=reason or f"Cancellation - order {order_id}",
            metadata={"reverses": sale.id},
            existing=lambda: self._find_reversal(order_id, sale),
        )

    # --- Internal helpers -----------------------------------------------------

    def _find_reversal(self, order_id: str, sale: StockMovement) -> StockMovement | None:
        for movement in self._movements.list_by_order(order_id):
            if (
                movement.type is MovementType.RETURN
                and movement.metadata.get("reverses") == sale.id
            ):
                return movement
        return None

    def _commit(
        self,
        variant_id: str,
        movement_type: MovementType,
        delta_for: Callable[[int], int],
        *,
        order_id: str | None = None,
        actor: str | None = None,
        reason: str,
        notes: str | None = None,
        metadata: dict[str, Any] | None = None,
        existing: Callable[[], StockMovement | None] | None = None,
    ) -> StockMovement:
        for attempt in range(1, self._max_attempts + 1):
            if existing is not None:
                found = existing()
                if found is not None:
                    logger.info(
                        "stock_movement_already_recorded",
                        movement_id=found.id,
                        variant_id=variant_id,
                        type=movement_type.value,
                        order_id=order_id,
                    )
                    return found

            current = self._movements.current_stock(variant_id)
            delta = delta_for(current)
            if current + delta < 0:
                raise InsufficientStock(variant_id, requested=-delta, available=current)

            movement = StockMovement(
                id=self._movements.next_id(),
                variant_id=variant_id,
                type=movement_type,
                quantity_delta=delta,
                previous_stock=current,
                new_stock=current + delta,
                reason=reason,
                order_id=order_id,
                actor=actor,
                notes=notes,
                metadata=dict(metadata or {}),
            )
            try:
                self._movements.append(movement)
            except StaleStockError as exc:
                logger.debug(
                    "stock_append_conflict",
                    variant_id=variant_id,
                    attempt=attempt,
                    expected=exc.expected,
                    actual=exc.actual,
                )
                if attempt < self._max_attempts:
                    self._backoff(attempt)
                continue

            logger.info(
                "stock_movement_recorded",
                movement_id=movement.id,
                variant_id=variant_id,
                type=movement_type.value,
                delta=delta,
                new_stock=movement.new_stock,
                order_id=order_id,
            )
            self._announce(movement)
            return movement

        logger.warning(
            "stock_retry_budget_exhausted",
            variant_id=variant_id,
            type=movement_type.value,
            attempts=self._max_attempts,
        )
        raise ConcurrencyConflict(variant_id, self._max_attempts)

    def _announce(self, movement: StockMovement) -> None:
        """Publish a committed movement. Subscriber failures never undo the commit."""
        if self._events is None:
            return
        try:
            self._events.publish(StockMovementRecorded(movement=movement))
        except Exception:
            logger.exception(
                "stock_event_handler_failed",
                movement_id=movement.id,
                variant_id=movement.variant_id,
                order_id=movement.order_id,
            )

    def _backoff(self, attempt: int) -> None:
        if self._backoff_base <= 0:
            return
        delay = self._backoff_base * (2 ** (attempt - 1))
        self._sleep(delay * random.uniform(0.5, 1.5))


def _require_positive(quantity: int, what: str) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError(f"{what} must be an integer")
    if quantity <= 0:
        raise ValidationError(f"{what} must be positive")


def _default_reason(movement_type: MovementType) -> str:
    return {
        MovementType.RESTOCK: "Restock",
        MovementType.ADJUSTMENT: "Manual adjustment",
        MovementType.RETURN: "Customer return",
        MovementType.DAMAGE: "Damaged goods",
    }[movement_type]
