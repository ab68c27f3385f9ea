"""CLI commands for orders: cart validation, checkout and staff actions."""

from __future__ import annotations

import json

import click

from confectionery.application.dto import OrderDTO, PlaceOrderRequest
from confectionery.application.show_order import ShowOrderHandler
from confectionery.config import get_settings
from confectionery.domain.exceptions import DomainException, PriceMismatch
from confectionery.domain.model.order import (
    Address,
    CustomerInfo,
    DeliveryMethod,
    OrderStatus,
    PaymentMethod,
)
from confectionery.domain.service.cart_validator import CartLineRequest, CartValidator
from confectionery.infrastructure.bootstrap import (
    catalog_repository,
    order_orchestrator,
    order_repository,
)


def _parse_items(raw: str) -> list[CartLineRequest]:
    """Parse 'v1:3,v2:5:4000:20000' into CartLineRequest list."""
    lines: list[CartLineRequest] = []
    for chunk in raw.split(","):
        parts = [p.strip() for p in chunk.strip().split(":")]
        if len(parts) not in (2, 4) or not parts[0]:
            raise click.BadParameter(
                f"Invalid item format '{chunk.strip()}'. "
                "Expected 'VARIANT:QTY' or 'VARIANT:QTY:FINAL_PRICE:SUBTOTAL'."
            )
        try:
            numbers = [int(p) for p in parts[1:]]
        except ValueError:
            raise click.BadParameter(f"Invalid number in item '{chunk.strip()}'.")
        if len(numbers) == 1:
            lines.append(CartLineRequest(variant_id=parts[0], quantity=numbers[0]))
        else:
            lines.append(
                CartLineRequest(
                    variant_id=parts[0],
                    quantity=numbers[0],
                    client_final_price=numbers[1],
                    client_subtotal=numbers[2],
                )
            )
    return lines


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order {dto.order_number}  (status={dto.status})")
    click.echo(f"Customer: {dto.customer_name}")
    click.echo(f"Created:  {dto.created_at}")
    click.echo()
    click.echo(f"  {'SKU':<12} {'Item':<24} {'Qty':>5} {'Unit':>14} {'Subtotal':>14}")
    click.echo(f"  {'-'*73}")
    for item in dto.items:
        click.echo(
            f"  {item.sku:<12} {item.name:<24} {item.quantity:>5} "
            f"{item.unit_price:>14} {item.subtotal:>14}"
        )
        if item.applied_discount:
            click.echo(f"  {'':<12} ({item.applied_discount}, saved {item.discount})")
    click.echo(f"  {'-'*73}")
    click.echo(f"  {'Discount':<44} {dto.total_discount:>29}")
    click.echo(f"  {'Subtotal':<44} {dto.subtotal:>29}")
    click.echo(f"  {'Shipping':<44} {dto.shipping_cost:>29}")
    click.echo(f"  {'Order Total':<44} {dto.total:>29}")
    if dto.cancellation_reason:
        click.echo(f"Cancellation reason: {dto.cancellation_reason}")


@click.command("validate-cart")
@click.option("--items", required=True, help="Items as 'VARIANT:QTY[:FINAL_PRICE:SUBTOTAL],...'.")
def order_validate_cart(items: str) -> None:
    """Re-price a cart on the server and report any discrepancies."""
    validator = CartValidator(catalog_repository())

    try:
        result = validator.validate(_parse_items(items))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(json.dumps(result.to_dict(), indent=2))


@click.command("create")
@click.option("--name", required=True, help="Customer name.")
@click.option("--email", required=True, help="Customer email.")
@click.option("--phone", required=True, help="Customer phone.")
@click.option("--items", required=True, help="Items as 'VARIANT:QTY[:FINAL_PRICE:SUBTOTAL],...'.")
@click.option(
    "--delivery",
    type=click.Choice([m.value for m in DeliveryMethod]),
    default=DeliveryMethod.PICKUP.value,
    show_default=True,
)
@click.option(
    "--payment",
    type=click.Choice([m.value for m in PaymentMethod]),
    default=PaymentMethod.CASH.value,
    show_default=True,
)
@click.option("--street", help="Delivery street.")
@click.option("--number", "street_number", help="Delivery street number.")
@click.option("--city", help="Delivery city.")
@click.option("--neighborhood", help="Delivery neighborhood.")
@click.option("--reference", help="Delivery reference.")
@click.option("--delivery-notes", help="Notes for the courier.")
@click.option("--notes", "customer_notes", help="Customer notes.")
@click.option("--actor", help="Who is placing the order.")
def order_create(
    name: str,
    email: str,
    phone: str,
    items: str,
    delivery: str,
    payment: str,
    street: str | None,
    street_number: str | None,
    city: str | None,
    neighborhood: str | None,
    reference: str | None,
    delivery_notes: str | None,
    customer_notes: str | None,
    actor: str | None,
) -> None:
    """Place a new order and print its WhatsApp link."""
    lines = _parse_items(items)
    address = None
    if street and street_number and city:
        address = Address(
            street=street,
            number=street_number,
            city=city,
            neighborhood=neighborhood,
            reference=reference,
        )

    try:
        request = PlaceOrderRequest(
            customer=CustomerInfo(name=name, email=email, phone=phone, address=address),
            items=lines,
            delivery_method=DeliveryMethod(delivery),
            payment_method=PaymentMethod(payment),
            delivery_notes=delivery_notes,
            customer_notes=customer_notes,
            actor=actor,
        )
        placed = order_orchestrator().create_order(request)
    except PriceMismatch as exc:
        click.echo(json.dumps(exc.to_dict(), indent=2), err=True)
        raise click.ClickException(str(exc))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {placed.order.order_number} created  (status={placed.order.status})")
    click.echo(f"Total: {placed.order.total}")
    click.echo(f"WhatsApp: {placed.whatsapp_url}")


@click.command("show")
@click.option("--number", "order_number", required=True, help="Order number.")
def order_show(order_number: str) -> None:
    """Show details of an existing order."""
    handler = ShowOrderHandler(order_repository(), get_settings().currency)

    try:
        dto = handler.handle(order_number)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)


@click.command("list")
@click.option(
    "--status",
    type=click.Choice([s.value for s in OrderStatus]),
    help="Only orders in this status.",
)
def order_list(status: str | None) -> None:
    """List orders, newest first."""
    handler = ShowOrderHandler(order_repository(), get_settings().currency)
    orders = handler.list_orders(OrderStatus(status) if status else None)

    if not orders:
        click.echo("No orders found.")
        return

    click.echo(f"{'Number':<18} {'Status':<18} {'Customer':<20} {'Total':>14}")
    click.echo("-" * 73)
    for o in orders:
        click.echo(f"{o.order_number:<18} {o.status:<18} {o.customer_name:<20} {o.total:>14}")


@click.command("confirm")
@click.option("--number", "order_number", required=True, help="Order number.")
@click.option("--shipping-cost", default=0, type=int, show_default=True, help="Shipping cost in minor units.")
@click.option("--notes", help="Admin notes.")
@click.option("--actor", help="Staff member confirming.")
def order_confirm(order_number: str, shipping_cost: int, notes: str | None, actor: str | None) -> None:
    """Confirm an order after talking to the customer."""
    try:
        dto = order_orchestrator().confirm_order(
            order_number, shipping_cost=shipping_cost, admin_notes=notes, actor=actor
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} confirmed. Total {dto.total}.")


@click.command("status")
@click.option("--number", "order_number", required=True, help="Order number.")
@click.option(
    "--status",
    "new_status",
    required=True,
    type=click.Choice([s.value for s in OrderStatus]),
    help="Target status.",
)
@click.option("--notes", help="Admin notes.")
@click.option("--reason", help="Required when cancelling.")
@click.option("--actor", help="Staff member making the change.")
def order_status(
    order_number: str,
    new_status: str,
    notes: str | None,
    reason: str | None,
    actor: str | None,
) -> None:
    """Move an order to another status."""
    try:
        dto = order_orchestrator().update_status(
            order_number,
            OrderStatus(new_status),
            admin_notes=notes,
            actor=actor,
            reason=reason,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} is now {dto.status}.")


@click.command("cancel")
@click.option("--number", "order_number", required=True, help="Order number.")
@click.option("--reason", required=True, help="Why the order is cancelled.")
@click.option("--actor", help="Staff member cancelling.")
def order_cancel(order_number: str, reason: str, actor: str | None) -> None:
    """Cancel an order and return its items to stock."""
    try:
        order_orchestrator().cancel_order(order_number, reason, actor=actor)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {order_number} cancelled; stock returned.")


@click.command("resume-cancel")
@click.option("--number", "order_number", required=True, help="Order number.")
@click.option("--actor", help="Staff member.")
def order_resume_cancel(order_number: str, actor: str | None) -> None:
    """Finish returning stock for a cancelled order."""
    try:
        returned = order_orchestrator().resume_cancellation(order_number, actor=actor)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {order_number}: {len(returned)} line(s) returned to stock.")


@click.command("release-stock")
@click.option("--number", "order_number", required=True, help="Order number of the failed checkout.")
@click.option("--actor", help="Staff member.")
def order_release_stock(order_number: str, actor: str | None) -> None:
    """Return stock still held by a checkout that never saved its order."""
    try:
        returned = order_orchestrator().release_unplaced_order(order_number, actor=actor)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    for movement in returned:
        click.echo(f"  {movement.variant_id}: +{movement.quantity_delta} (stock {movement.new_stock})")
    click.echo(f"{order_number}: {len(returned)} line(s) returned to stock.")


@click.command("shipping")
@click.option("--number", "order_number", required=True, help="Order number.")
@click.option("--cost", required=True, type=int, help="Shipping cost in minor units.")
@click.option("--actor", help="Staff member.")
def order_shipping(order_number: str, cost: int, actor: str | None) -> None:
    """Change the shipping cost of an open order."""
    try:
        dto = order_orchestrator().update_shipping_cost(order_number, cost, actor=actor)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} shipping {dto.shipping_cost}, total {dto.total}.")


@click.command("whatsapp-sent")
@click.option("--number", "order_number", required=True, help="Order number.")
@click.option("--message-id", help="WhatsApp message id.")
def order_whatsapp_sent(order_number: str, message_id: str | None) -> None:
    """Record that the order message went out on WhatsApp."""
    try:
        order_orchestrator().mark_whatsapp_sent(order_number, message_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {order_number} marked as sent on WhatsApp.")
