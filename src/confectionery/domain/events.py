"""Domain events and a minimal synchronous dispatcher.

Stock changes and order status changes are announced here explicitly
instead of happening as hidden side effects of saving.
Events are past-tense, immutable facts.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from confectionery.domain.model.stock import StockMovement


@dataclass(frozen=True)
class DomainEvent:
    occurred_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc), kw_only=True
    )


@dataclass(frozen=True)
class StockMovementRecorded(DomainEvent):
    movement: StockMovement


@dataclass(frozen=True)
class LowStockReached(DomainEvent):
    variant_id: str
    stock: int
    threshold: int


@dataclass(frozen=True)
class OrderPlaced(DomainEvent):
    order_number: str
    total: int
    item_count: int


@dataclass(frozen=True)
class OrderStatusChanged(DomainEvent):
    order_number: str
    previous_status: str
    new_status: str
    actor: str | None = None
    reason: str | None = None


Handler = Callable[[DomainEvent], None]


class EventBus:
    """Publishes events to handlers subscribed by event type.

    Handlers run synchronously in subscription order. A handler that raises
    propagates to the publisher.
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Handler]] = defaultdict(list)

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def publish(self, event: DomainEvent) -> None:
        for event_type in type(event).__mro__:
            for handler in self._handlers.get(event_type, ()):
                handler(event)

