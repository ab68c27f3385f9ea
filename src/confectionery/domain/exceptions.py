"""Domain-level exceptions.

All business rule violations are expressed as subclasses of DomainException
so the CLI layer can catch them uniformly and display user-friendly messages.

Each class carries a stable ``code`` and a ``retryable`` flag: ``True`` means
the same request may succeed if simply retried, ``False`` means the caller
has to change its input (or resynchronize) first.
"""

from __future__ import annotations

from typing import Any


class DomainException(Exception):
    """Base class for all domain errors."""

    code = "domain_error"
    retryable = False

    def details(self) -> dict[str, Any]:
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": str(self),
            "retryable": self.retryable,
            **self.details(),
        }


class ValidationError(DomainException):
    """A business rule or invariant was violated."""

    code = "validation_error"


class EntityNotFoundError(DomainException):
    """A requested entity does not exist."""

    code = "not_found"


class PriceMismatch(DomainException):
    """Client-submitted prices disagree with the server computation."""

    code = "price_mismatch"

    def __init__(self, message: str, discrepancies: list, server_prices: list) -> None:
        super().__init__(message)
        self.discrepancies = discrepancies
        self.server_prices = server_prices

    def details(self) -> dict[str, Any]:
        return {
            "discrepancies": [d.to_dict() for d in self.discrepancies],
            "server_prices": [p.to_dict() for p in self.server_prices],
        }


class InsufficientStock(DomainException):
    """Not enough stock to cover a decrement."""

    code = "insufficient_stock"

    def __init__(self, variant_id: str, requested: int, available: int) -> None:
        super().__init__(
            f"Insufficient stock for variant '{variant_id}' "
            f"(requested {requested}, available {available})"
        )
        self.variant_id = variant_id
        self.requested = requested
        self.available = available

    def details(self) -> dict[str, Any]:
        return {
            "variant_id": self.variant_id,
            "requested": self.requested,
            "available": self.available,
        }


class ConcurrencyConflict(DomainException):
    """Another writer kept winning the race for the same stock or order."""

    code = "concurrency_conflict"
    retryable = True

    def __init__(self, resource_id: str, attempts: int) -> None:
        super().__init__(
            f"'{resource_id}' kept changing under concurrent writers; "
            f"gave up after {attempts} attempt(s)"
        )
        self.resource_id = resource_id
        self.attempts = attempts

    def details(self) -> dict[str, Any]:
        return {"resource_id": self.resource_id, "attempts": self.attempts}


class InvalidTransition(DomainException):
    """The order state machine rejected a status change."""

    code = "invalid_transition"

    def __init__(self, current: Any, target: Any) -> None:
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            f"Cannot move order from '{current_value}' to '{target_value}'"
        )
        self.current = current_value
        self.target = target_value

    def details(self) -> dict[str, Any]:
        return {"current": self.current, "target": self.target}


class MovementNotFound(DomainException):
    """A sale reversal was requested for a sale that was never recorded."""

    code = "movement_not_found"

    def __init__(self, order_id: str, variant_id: str) -> None:
        super().__init__(
            f"No sale movement recorded for order '{order_id}' "
            f"and variant '{variant_id}'"
        )
        self.order_id = order_id
        self.variant_id = variant_id

    def details(self) -> dict[str, Any]:
        return {"order_id": self.order_id, "variant_id": self.variant_id}


class RollbackIncomplete(DomainException):
    """A failed checkout could not hand back every unit it had sold.

    The listed sales stay committed against an order that was never
    persisted until ``release_unplaced_order`` reverses them.
    """

    code = "rollback_incomplete"

    def __init__(self, order_id: str, variant_ids: list[str]) -> None:
        super().__init__(
            f"Checkout {order_id} failed and sales for "
            f"{', '.join(variant_ids)} could not be returned to stock"
        )
        self.order_id = order_id
        self.variant_ids = list(variant_ids)

    def details(self) -> dict[str, Any]:
        return {"order_id": self.order_id, "variant_ids": self.variant_ids}
