"""Order aggregate.

The Order owns its line items, which are price snapshots taken when the
order was created. Status changes are planned by the OrderStateMachine and
applied here; the aggregate never decides on its own which transitions
are legal.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING

from confectionery.domain.exceptions import ValidationError

if TYPE_CHECKING:
    from confectionery.domain.service.order_state_machine import Transition


class OrderStatus(Enum):
    PENDING_WHATSAPP = "pending_whatsapp"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @staticmethod
    def parse(raw: str) -> OrderStatus:
        try:
            return OrderStatus(raw)
        except ValueError as exc:
            raise ValidationError(f"Unknown order status: {raw!r}") from exc


class DeliveryMethod(Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


class PaymentMethod(Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    CARD = "card"


@dataclass(frozen=True)
class Address:
    street: str
    number: str
    city: str
    neighborhood: str | None = None
    reference: str | None = None


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    email: str
    phone: str
    address: Address | None = None

    def __post_init__(self) -> None:
        for label, value in (("name", self.name), ("email", self.email), ("phone", self.phone)):
            if not value or not value.strip():
                raise ValidationError(f"Customer {label} is required")


@dataclass(frozen=True)
class OrderItem:
    """Price snapshot of one variant at order-creation time.

    Never recomputed from live catalog prices.
    """

    variant_id: str
    sku: str
    name: str
    quantity: int
    original_price: int
    unit_price: int
    discount: int  # total for the line
    subtotal: int
    applied_discount: str = ""


# ---------------------------------------------------------------------------
# Constants for business rules
# ---------------------------------------------------------------------------
MAX_LINE_ITEMS = 50


@dataclass
class Order:
    """Aggregate root for customer orders.

    Orders are never deleted; cancellation is a status.
    """

    order_number: str
    customer: CustomerInfo
    items: list[OrderItem]
    delivery_method: DeliveryMethod = DeliveryMethod.PICKUP
    payment_method: PaymentMethod = PaymentMethod.CASH
    status: OrderStatus = OrderStatus.PENDING_WHATSAPP
    shipping_cost: int = 0
    whatsapp_sent: bool = False
    whatsapp_sent_at: datetime | None = None
    whatsapp_message_id: str | None = None
    delivery_notes: str | None = None
    customer_notes: str | None = None
    admin_notes: str | None = None
    created_by: str | None = None
    updated_by: str | None = None
    cancelled_by: str | None = None
    cancellation_reason: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime | None = None
    confirmed_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None

    # --- Factory (used for NEW orders only) -----------------------------------

    @staticmethod
    def place(
        order_number: str,
        customer: CustomerInfo,
        items: list[OrderItem],
        **details,
    ) -> Order:
        """Build a new order in ``pending_whatsapp``, enforcing item rules."""
        if not items:
            raise ValidationError("Order must contain at least one item")
        if len(items) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")
        order = Order(order_number=order_number, customer=customer, items=list(items), **details)
        order.updated_at = order.created_at
        return order

    # --- State transitions ----------------------------------------------------

    def apply(self, transition: Transition, at: datetime, actor: str | None = None) -> None:
        """Apply a transition planned by the state machine."""
        if transition.source is not self.status:
            raise ValidationError(
                f"Transition planned from {transition.source.value} "
                f"but order is {self.status.value}"
            )
        self.status = transition.target
        self.updated_at = at
        self.updated_by = actor
        if transition.target is OrderStatus.CONFIRMED and self.confirmed_at is None:
            self.confirmed_at = at
        elif transition.target is OrderStatus.COMPLETED and self.completed_at is None:
            self.completed_at = at
        elif transition.target is OrderStatus.CANCELLED and self.cancelled_at is None:
            self.cancelled_at = at
            self.cancelled_by = actor

    def set_shipping_cost(self, shipping_cost: int) -> None:
        if isinstance(shipping_cost, bool) or not isinstance(shipping_cost, int):
            raise ValidationError("Shipping cost must be an integer")
        if shipping_cost < 0:
            raise ValidationError("Shipping cost cannot be negative")
        self.shipping_cost = shipping_cost

    # --- Computed properties --------------------------------------------------

    @property
    def subtotal(self) -> int:
        return sum(item.subtotal for item in self.items)

    @property
    def total_discount(self) -> int:
        return sum(item.discount for item in self.items)

    @property
    def total(self) -> int:
        return self.subtotal + self.shipping_cost

    @property
    def is_terminal(self) -> bool:
        return self.status in (OrderStatus.COMPLETED, OrderStatus.CANCELLED)
