"""JSON-file-backed implementation of StockMovementRepository.

Movements are appended to a single list, oldest first. Current stock is
folded from the file under the lock on every conditional append, so the
check and the write can never interleave with another writer in this
process.
"""

from __future__ import annotations

import uuid
from pathlib import Path

from confectionery.domain.model.stock import MovementType, StockMovement
from confectionery.domain.repository.stock_movement_repository import (
    StaleStockError,
    StockMovementRepository,
)
from confectionery.infrastructure.persistence._json_file import (
    dt_from_raw,
    dt_to_raw,
    ensure_file,
    lock_for,
    read_json,
    write_json,
)


class JsonStockMovementRepository(StockMovementRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._lock = lock_for(file_path)
        ensure_file(file_path, [])

    # --- StockMovementRepository interface ------------------------------------

    def next_id(self) -> str:
        return uuid.uuid4().hex

    def current_stock(self, variant_id: str) -> int:
        return self._fold(self._load_raw(), variant_id)

    def append(self, movement: StockMovement) -> None:
        with self._lock:
            data = self._load_raw()
            actual = self._fold(data, movement.variant_id)
            if actual != movement.previous_stock:
                raise StaleStockError(movement.variant_id, movement.previous_stock, actual)
            data.append(self._to_raw(movement))
            self._persist_raw(data)

    def find(
        self, order_id: str, variant_id: str, movement_type: MovementType
    ) -> StockMovement | None:
        for raw in self._load_raw():
            if (
                raw["orderId"] == order_id
                and raw["variantId"] == variant_id
                and raw["type"] == movement_type.value
            ):
                return self._to_domain(raw)
        return None

    def list_by_variant(self, variant_id: str) -> list[StockMovement]:
        return [self._to_domain(r) for r in self._load_raw() if r["variantId"] == variant_id]

    def list_by_order(self, order_id: str) -> list[StockMovement]:
        return [self._to_domain(r) for r in self._load_raw() if r["orderId"] == order_id]

    def list_all(self, movement_type: MovementType | None = None) -> list[StockMovement]:
        return [
            self._to_domain(r)
            for r in self._load_raw()
            if movement_type is None or r["type"] == movement_type.value
        ]

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _fold(data: list[dict], variant_id: str) -> int:
        return sum(r["quantity"] for r in data if r["variantId"] == variant_id)

    @staticmethod
    def _to_raw(movement: StockMovement) -> dict:
        return {
            "id": movement.id,
            "variantId": movement.variant_id,
            "type": movement.type.value,
            "quantity": movement.quantity_delta,
            "previousStock": movement.previous_stock,
            "newStock": movement.new_stock,
            "reason": movement.reason,
            "orderId": movement.order_id,
            "actor": movement.actor,
            "notes": movement.notes,
            "metadata": movement.metadata,
            "createdAt": dt_to_raw(movement.created_at),
        }

    @staticmethod
    def _to_domain(raw: dict) -> StockMovement:
        return StockMovement(
            id=raw["id"],
            variant_id=raw["variantId"],
            type=MovementType(raw["type"]),
            quantity_delta=raw["quantity"],
            previous_stock=raw["previousStock"],
            new_stock=raw["newStock"],
            reason=raw["reason"],
            order_id=raw.get("orderId"),
            actor=raw.get("actor"),
            notes=raw.get("notes"),
            metadata=raw.get("metadata") or {},
            created_at=dt_from_raw(raw["createdAt"]),
        )

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> list[dict]:
        with self._lock:
            return read_json(self._file_path)

    def _persist_raw(self, data: list[dict]) -> None:
        write_json(self._file_path, data)
