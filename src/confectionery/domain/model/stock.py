"""Stock movements: the immutable entries of the stock ledger."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from confectionery.domain.exceptions import ValidationError


class MovementType(Enum):
    SALE = "sale"
    RESTOCK = "restock"
    ADJUSTMENT = "adjustment"
    RETURN = "return"
    DAMAGE = "damage"

    @staticmethod
    def parse(raw: str) -> MovementType:
        try:
            return MovementType(raw)
        except ValueError as exc:
            raise ValidationError(f"Unknown movement type: {raw!r}") from exc


@dataclass(frozen=True)
class StockMovement:
    """One committed change to a variant's stock.

    Created once by the ledger and never mutated or deleted.
    ``new_stock == previous_stock + quantity_delta`` always holds.
    """

    id: str
    variant_id: str
    type: MovementType
    quantity_delta: int
    previous_stock: int
    new_stock: int
    reason: str
    order_id: str | None = None
    actor: str | None = None
    notes: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.quantity_delta == 0:
            raise ValidationError("Movement quantity cannot be zero")
        if self.new_stock != self.previous_stock + self.quantity_delta:
            raise ValidationError("Movement new_stock does not match its delta")
        if self.type is MovementType.SALE and not self.order_id:
            raise ValidationError("Sale movements must reference an order")
