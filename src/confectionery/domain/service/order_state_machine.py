"""Domain service: Order State Machine.

Single authority over which status changes are legal and which stock
ledger operation each one triggers.

    pending_whatsapp -> confirmed -> preparing -> shipped -> completed
           \\               \\            \\           \\
            +--------------+------------+-----------+--> cancelled

``completed`` and ``cancelled`` are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from confectionery.domain.exceptions import InvalidTransition
from confectionery.domain.model.order import OrderStatus


class LedgerEffect(Enum):
    NONE = "none"
    DECREMENT = "decrement"  # every item sold; order creation only
    REVERSE_SALES = "reverse_sales"  # every item's sale reversed


@dataclass(frozen=True)
class Transition:
    source: OrderStatus | None
    target: OrderStatus
    effect: LedgerEffect


INITIAL_STATUS = OrderStatus.PENDING_WHATSAPP

TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING_WHATSAPP: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELLED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

_missing = set(OrderStatus) - set(TRANSITIONS)
if _missing:
    raise RuntimeError(
        "Order statuses without transition rules: "
        + ", ".join(sorted(s.value for s in _missing))
    )


def _effect_of(target: OrderStatus) -> LedgerEffect:
    if target is OrderStatus.CANCELLED:
        return LedgerEffect.REVERSE_SALES
    if target in (
        OrderStatus.CONFIRMED,
        OrderStatus.PREPARING,
        OrderStatus.SHIPPED,
        OrderStatus.COMPLETED,
    ):
        return LedgerEffect.NONE
    # Entering the initial status only happens through creation().
    raise InvalidTransition(None, target)


class OrderStateMachine:

    @staticmethod
    def creation() -> Transition:
        """The only way into the initial status; sells every item."""
        return Transition(None, INITIAL_STATUS, LedgerEffect.DECREMENT)

    @staticmethod
    def allowed_targets(current: OrderStatus) -> frozenset[OrderStatus]:
        return TRANSITIONS[current]

    @staticmethod
    def is_terminal(status: OrderStatus) -> bool:
        return not TRANSITIONS[status]

    @staticmethod
    def plan(current: OrderStatus, target: OrderStatus) -> Transition:
        """Validate ``current -> target`` and describe its ledger effect.

        Raises InvalidTransition for anything not in the table.
        """
        if target not in TRANSITIONS[current]:
            raise InvalidTransition(current, target)
        return Transition(current, target, _effect_of(target))
