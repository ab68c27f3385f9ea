"""WhatsApp contact link for a freshly placed order.

Only builds the message text and the ``wa.me`` URL; sending anything is
left to the customer's device.
"""

from __future__ import annotations

from urllib.parse import quote

from confectionery.application.dto import format_amount
from confectionery.domain.model.order import DeliveryMethod, Order


def order_message(order: Order, currency: str = "PYG") -> str:
    lines: list[str] = [
        "*NEW ORDER*",
        "",
        f"*Order:* {order.order_number}",
        f"*Date:* {order.created_at.strftime('%Y-%m-%d %H:%M')}",
        "",
        "*CUSTOMER*",
        f"Name: {order.customer.name}",
        f"Email: {order.customer.email}",
        f"Phone: {order.customer.phone}",
        "",
    ]

    if order.delivery_method is DeliveryMethod.DELIVERY:
        lines.append("*DELIVERY ADDRESS*")
        address = order.customer.address
        if address is not None:
            lines.append(f"{address.street} {address.number}")
            lines.append(address.city)
            if address.neighborhood:
                lines.append(f"Neighborhood: {address.neighborhood}")
            if address.reference:
                lines.append(f"Reference: {address.reference}")
        else:
            # Staff asks for it over the chat.
            lines.append("_Address not provided_")
        if order.delivery_notes:
            lines.append(f"Notes: {order.delivery_notes}")
    else:
        lines.append("*PICKUP IN STORE*")
    lines.append("")

    lines.append("*ITEMS*")
    for item in order.items:
        lines.append(
            f"- {item.name} x{item.quantity} @ {format_amount(item.unit_price, currency)}"
            f" = {format_amount(item.subtotal, currency)}"
        )
    lines.append("")

    if order.total_discount:
        lines.append(f"Discount: -{format_amount(order.total_discount, currency)}")
    lines.append(f"*Subtotal:* {format_amount(order.subtotal, currency)}")
    lines.append("Shipping cost to be confirmed by staff.")
    lines.append(f"*Payment:* {order.payment_method.value}")

    if order.customer_notes:
        lines.append("")
        lines.append(f"Customer notes: {order.customer_notes}")

    return "\n".join(lines)


def whatsapp_url(phone: str, message: str) -> str:
    digits = "".join(ch for ch in phone if ch.isdigit())
    return f"https://wa.me/{digits}?text={quote(message, safe='')}"
