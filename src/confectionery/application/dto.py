"""Data Transfer Objects: plain containers that cross layer boundaries.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from confectionery.domain.model.order import (
    CustomerInfo,
    DeliveryMethod,
    Order,
    PaymentMethod,
)
from confectionery.domain.model.stock import StockMovement
from confectionery.domain.service.cart_validator import CartLineRequest


def format_amount(amount: int, currency: str = "PYG") -> str:
    """Format minor units the way the store prints them, e.g. ``8.550 PYG``."""
    sign = "-" if amount < 0 else ""
    return f"{sign}{abs(amount):,}".replace(",", ".") + f" {currency}"


# --- Inputs -------------------------------------------------------------------


@dataclass(frozen=True)
class PlaceOrderRequest:
    """Input: checkout as submitted by the client.

    Item prices are optional; when present they are checked against the
    server computation, never used.
    """

    customer: CustomerInfo
    items: list[CartLineRequest]
    delivery_method: DeliveryMethod = DeliveryMethod.PICKUP
    payment_method: PaymentMethod = PaymentMethod.CASH
    delivery_notes: str | None = None
    customer_notes: str | None = None
    actor: str | None = None


# --- Outputs ------------------------------------------------------------------


@dataclass(frozen=True)
class OrderItemDTO:
    variant_id: str
    sku: str
    name: str
    quantity: int
    unit_price: str
    discount: str
    subtotal: str
    applied_discount: str


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as displayed to staff or customers."""

    order_number: str
    customer_name: str
    status: str
    items: list[OrderItemDTO]
    subtotal: str
    total_discount: str
    shipping_cost: str
    total: str
    whatsapp_sent: bool
    created_at: str
    cancellation_reason: str | None = None

    @staticmethod
    def from_order(order: Order, currency: str = "PYG") -> OrderDTO:
        return OrderDTO(
            order_number=order.order_number,
            customer_name=order.customer.name,
            status=order.status.value,
            items=[
                OrderItemDTO(
                    variant_id=item.variant_id,
                    sku=item.sku,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=format_amount(item.unit_price, currency),
                    discount=format_amount(item.discount, currency),
                    subtotal=format_amount(item.subtotal, currency),
                    applied_discount=item.applied_discount,
                )
                for item in order.items
            ],
            subtotal=format_amount(order.subtotal, currency),
            total_discount=format_amount(order.total_discount, currency),
            shipping_cost=format_amount(order.shipping_cost, currency),
            total=format_amount(order.total, currency),
            whatsapp_sent=order.whatsapp_sent,
            created_at=order.created_at.strftime("%Y-%m-%d %H:%M UTC"),
            cancellation_reason=order.cancellation_reason,
        )


@dataclass(frozen=True)
class OrderPlacedDTO:
    """Output of checkout: the order plus the WhatsApp contact link."""

    order: OrderDTO
    whatsapp_url: str
    whatsapp_message: str


@dataclass(frozen=True)
class StockMovementDTO:
    id: str
    variant_id: str
    type: str
    quantity: int
    previous_stock: int
    new_stock: int
    reason: str
    order_id: str | None
    actor: str | None
    created_at: str

    @staticmethod
    def from_movement(movement: StockMovement) -> StockMovementDTO:
        return StockMovementDTO(
            id=movement.id,
            variant_id=movement.variant_id,
            type=movement.type.value,
            quantity=movement.quantity_delta,
            previous_stock=movement.previous_stock,
            new_stock=movement.new_stock,
            reason=movement.reason,
            order_id=movement.order_id,
            actor=movement.actor,
            created_at=movement.created_at.strftime("%Y-%m-%d %H:%M:%S UTC"),
        )


@dataclass(frozen=True)
class MovementPageDTO:
    movements: list[StockMovementDTO] = field(default_factory=list)
    page: int = 1
    limit: int = 50
    total: int = 0
    total_pages: int = 0


@dataclass(frozen=True)
class StockLevelDTO:
    variant_id: str
    sku: str
    name: str
    stock: int
    low_stock_threshold: int
