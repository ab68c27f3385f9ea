"""JSON-file-backed implementation of OrderRepository.

File layout: ``{"sequences": {"QUE-20260101": 3}, "orders": [...]}``.
The per-day sequence counter is persisted separately from the orders so
an order number reserved by a failed checkout is never handed out again.
"""

from __future__ import annotations

from datetime import date, datetime
from pathlib import Path

from confectionery.domain.exceptions import ValidationError
from confectionery.domain.model.order import (
    Address,
    CustomerInfo,
    DeliveryMethod,
    Order,
    OrderItem,
    OrderStatus,
    PaymentMethod,
)
from confectionery.domain.repository.order_repository import (
    OrderRepository,
    StaleOrderError,
)
from confectionery.infrastructure.persistence._json_file import (
    dt_from_raw,
    dt_to_raw,
    ensure_file,
    lock_for,
    read_json,
    write_json,
)


class JsonOrderRepository(OrderRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._lock = lock_for(file_path)
        ensure_file(file_path, {"sequences": {}, "orders": []})

    # --- OrderRepository interface --------------------------------------------

    def reserve_order_number(self, prefix: str, day: date) -> str:
        key = f"{prefix}-{day.strftime('%Y%m%d')}"
        with self._lock:
            data = self._load_raw()
            sequence = data["sequences"].get(key, 0) + 1
            data["sequences"][key] = sequence
            self._persist_raw(data)
        return f"{key}-{sequence:03d}"

    def get_by_number(self, order_number: str) -> Order | None:
        for raw in self._load_raw()["orders"]:
            if raw["orderNumber"] == order_number:
                return self._to_domain(raw)
        return None

    def list_all(self, status: OrderStatus | None = None) -> list[Order]:
        orders = [self._to_domain(raw) for raw in self._load_raw()["orders"]]
        if status is not None:
            orders = [o for o in orders if o.status is status]
        return sorted(orders, key=lambda o: o.created_at, reverse=True)

    def add(self, order: Order) -> None:
        with self._lock:
            data = self._load_raw()
            if any(raw["orderNumber"] == order.order_number for raw in data["orders"]):
                raise ValidationError(f"Order {order.order_number} already exists")
            data["orders"].append(self._to_raw(order))
            self._persist_raw(data)

    def save(
        self,
        order: Order,
        expected_status: OrderStatus,
        expected_updated_at: datetime | None = None,
    ) -> None:
        with self._lock:
            data = self._load_raw()
            for i, raw in enumerate(data["orders"]):
                if raw["orderNumber"] != order.order_number:
                    continue
                stored = OrderStatus(raw["status"])
                if stored is not expected_status:
                    raise StaleOrderError(order.order_number, expected_status, stored)
                if (
                    expected_updated_at is not None
                    and raw.get("updatedAt") != dt_to_raw(expected_updated_at)
                ):
                    raise StaleOrderError(
                        order.order_number,
                        expected_status,
                        stored,
                        f"Order {order.order_number} was modified concurrently",
                    )
                data["orders"][i] = self._to_raw(order)
                self._persist_raw(data)
                return
        raise ValidationError(f"Order {order.order_number} does not exist")

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _to_raw(order: Order) -> dict:
        customer = order.customer
        address = customer.address
        return {
            "orderNumber": order.order_number,
            "customer": {
                "name": customer.name,
                "email": customer.email,
                "phone": customer.phone,
                "address": None if address is None else {
                    "street": address.street,
                    "number": address.number,
                    "city": address.city,
                    "neighborhood": address.neighborhood,
                    "reference": address.reference,
                },
            },
            "items": [
                {
                    "variantId": item.variant_id,
                    "sku": item.sku,
                    "name": item.name,
                    "quantity": item.quantity,
                    "originalPrice": item.original_price,
                    "unitPrice": item.unit_price,
                    "discount": item.discount,
                    "subtotal": item.subtotal,
                    "appliedDiscount": item.applied_discount,
                }
                for item in order.items
            ],
            "deliveryMethod": order.delivery_method.value,
            "paymentMethod": order.payment_method.value,
            "status": order.status.value,
            "shippingCost": order.shipping_cost,
            "whatsappSent": order.whatsapp_sent,
            "whatsappSentAt": dt_to_raw(order.whatsapp_sent_at),
            "whatsappMessageId": order.whatsapp_message_id,
            "deliveryNotes": order.delivery_notes,
            "customerNotes": order.customer_notes,
            "adminNotes": order.admin_notes,
            "createdBy": order.created_by,
            "updatedBy": order.updated_by,
            "cancelledBy": order.cancelled_by,
            "cancellationReason": order.cancellation_reason,
            "createdAt": dt_to_raw(order.created_at),
            "updatedAt": dt_to_raw(order.updated_at),
            "confirmedAt": dt_to_raw(order.confirmed_at),
            "completedAt": dt_to_raw(order.completed_at),
            "cancelledAt": dt_to_raw(order.cancelled_at),
        }

    @staticmethod
    def _to_domain(raw: dict) -> Order:
        """Reconstitute an Order from stored data, bypassing the place() factory."""
        customer = raw["customer"]
        address = customer.get("address")
        return Order(
            order_number=raw["orderNumber"],
            customer=CustomerInfo(
                name=customer["name"],
                email=customer["email"],
                phone=customer["phone"],
                address=None if address is None else Address(**address),
            ),
            items=[
                OrderItem(
                    variant_id=item["variantId"],
                    sku=item["sku"],
                    name=item["name"],
                    quantity=item["quantity"],
                    original_price=item["originalPrice"],
                    unit_price=item["unitPrice"],
                    discount=item["discount"],
                    subtotal=item["subtotal"],
                    applied_discount=item.get("appliedDiscount", ""),
                )
                for item in raw["items"]
            ],
            delivery_method=DeliveryMethod(raw["deliveryMethod"]),
            payment_method=PaymentMethod(raw["paymentMethod"]),
            status=OrderStatus(raw["status"]),
            shipping_cost=raw.get("shippingCost", 0),
            whatsapp_sent=raw.get("whatsappSent", False),
            whatsapp_sent_at=dt_from_raw(raw.get("whatsappSentAt")),
            whatsapp_message_id=raw.get("whatsappMessageId"),
            delivery_notes=raw.get("deliveryNotes"),
            customer_notes=raw.get("customerNotes"),
            admin_notes=raw.get("adminNotes"),
            created_by=raw.get("createdBy"),
            updated_by=raw.get("updatedBy"),
            cancelled_by=raw.get("cancelledBy"),
            cancellation_reason=raw.get("cancellationReason"),
            created_at=dt_from_raw(raw["createdAt"]),
            updated_at=dt_from_raw(raw.get("updatedAt")),
            confirmed_at=dt_from_raw(raw.get("confirmedAt")),
            completed_at=dt_from_raw(raw.get("completedAt")),
            cancelled_at=dt_from_raw(raw.get("cancelledAt")),
        )

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> dict:
        with self._lock:
            return read_json(self._file_path)

    def _persist_raw(self, data: dict) -> None:
        write_json(self._file_path, data)
