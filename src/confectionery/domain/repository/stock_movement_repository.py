"""Abstract repository for the stock ledger.

The store is append-only. ``append`` is the single atomic conditional
write everything else builds on: it commits a movement only if the
variant's stock is still what the movement was computed from.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from confectionery.domain.model.stock import MovementType, StockMovement


class StaleStockError(Exception):
    """The variant's stock changed between read and append."""

    def __init__(self, variant_id: str, expected: int, actual: int) -> None:
        super().__init__(
            f"Stock for '{variant_id}' is {actual}, movement was computed from {expected}"
        )
        self.variant_id = variant_id
        self.expected = expected
        self.actual = actual


class StockMovementRepository(ABC):

    @abstractmethod
    def next_id(self) -> str:
        """Generate a new opaque movement identifier."""

    @abstractmethod
    def current_stock(self, variant_id: str) -> int:
        """Sum of all movement deltas for the variant (0 if none)."""

    @abstractmethod
    def append(self, movement: StockMovement) -> None:
        """Atomically commit *movement*.

        Raises StaleStockError unless ``movement.previous_stock`` equals
        the variant's current stock at the moment of commit.
        """

    @abstractmethod
    def find(
        self, order_id: str, variant_id: str, movement_type: MovementType
    ) -> StockMovement | None:
        """Return the movement of *movement_type* for an (order, variant) pair."""

    @abstractmethod
    def list_by_variant(self, variant_id: str) -> list[StockMovement]:
        """Movements for a variant, oldest first."""

    @abstractmethod
    def list_by_order(self, order_id: str) -> list[StockMovement]:
        """Movements referencing an order, oldest first."""

    @abstractmethod
    def list_all(self, movement_type: MovementType | None = None) -> list[StockMovement]:
        """Every movement, oldest first, optionally filtered by type."""
