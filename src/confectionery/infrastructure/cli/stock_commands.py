"""CLI commands for the stock ledger."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

import click

from confectionery.application.adjust_stock import AdjustStockHandler, RestockHandler
from confectionery.application.dto import StockMovementDTO
from confectionery.application.show_stock import (
    ListStockMovementsHandler,
    ShowStockLevelsHandler,
)
from confectionery.domain.exceptions import DomainException
from confectionery.domain.model.stock import MovementType
from confectionery.infrastructure.bootstrap import catalog_repository, stock_ledger


def _print_movements(movements: list[StockMovementDTO]) -> None:
    if not movements:
        click.echo("No stock movements found.")
        return

    click.echo(
        f"{'When':<24} {'Variant':<12} {'Type':<11} {'Qty':>6} {'Before':>7} {'After':>7}  Reason"
    )
    click.echo("-" * 90)
    for m in movements:
        click.echo(
            f"{m.created_at:<24} {m.variant_id:<12} {m.type:<11} {m.quantity:>6} "
            f"{m.previous_stock:>7} {m.new_stock:>7}  {m.reason}"
        )


@click.command("adjust")
@click.option("--variant", "variant_id", required=True, help="Variant ID.")
@click.option("--quantity", required=True, type=int, help="Signed correction, e.g. -3.")
@click.option("--reason", required=True, help="Why the count changed.")
@click.option("--notes", help="Extra notes.")
@click.option("--actor", help="Staff member.")
def stock_adjust(
    variant_id: str, quantity: int, reason: str, notes: str | None, actor: str | None
) -> None:
    """Apply a manual stock correction."""
    handler = AdjustStockHandler(catalog_repository(), stock_ledger())

    try:
        movement = handler.handle(variant_id, quantity, reason, notes=notes, actor=actor)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(
        f"Stock for '{variant_id}' adjusted {movement.previous_stock} -> {movement.new_stock}"
    )


@click.command("restock")
@click.option("--variant", "variant_id", required=True, help="Variant ID.")
@click.option("--quantity", required=True, type=int, help="Units received.")
@click.option("--cost", help="Purchase cost (e.g. 125000).")
@click.option("--supplier", help="Supplier name.")
@click.option("--invoice", "invoice_number", help="Supplier invoice number.")
@click.option("--notes", help="Extra notes.")
@click.option("--actor", help="Staff member.")
def stock_restock(
    variant_id: str,
    quantity: int,
    cost: str | None,
    supplier: str | None,
    invoice_number: str | None,
    notes: str | None,
    actor: str | None,
) -> None:
    """Receive a delivery of new units."""
    try:
        parsed_cost = Decimal(cost) if cost is not None else None
    except InvalidOperation:
        raise click.BadParameter(f"Invalid cost '{cost}'.")

    handler = RestockHandler(catalog_repository(), stock_ledger())

    try:
        movement = handler.handle(
            variant_id,
            quantity,
            cost=parsed_cost,
            supplier=supplier,
            invoice_number=invoice_number,
            notes=notes,
            actor=actor,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Restocked '{variant_id}': {movement.previous_stock} -> {movement.new_stock}")


@click.command("movements")
@click.option("--variant", "variant_id", help="Only this variant (newest first).")
@click.option("--order", "order_number", help="Only movements of this order.")
@click.option(
    "--type",
    "movement_type",
    type=click.Choice([t.value for t in MovementType]),
    help="Only movements of this type.",
)
@click.option("--page", default=1, type=int, show_default=True)
@click.option("--limit", default=100, type=int, show_default=True)
def stock_movements(
    variant_id: str | None,
    order_number: str | None,
    movement_type: str | None,
    page: int,
    limit: int,
) -> None:
    """Show the stock ledger."""
    handler = ListStockMovementsHandler(catalog_repository(), stock_ledger())

    try:
        if variant_id:
            _print_movements(handler.by_variant(variant_id, limit))
        elif order_number:
            _print_movements(handler.by_order(order_number))
        else:
            result = handler.page(
                MovementType(movement_type) if movement_type else None,
                page=page,
                limit=limit,
            )
            _print_movements(result.movements)
            click.echo(f"Page {result.page}/{result.total_pages} ({result.total} movements)")
    except DomainException as exc:
        raise click.ClickException(str(exc))


@click.command("low")
@click.option("--limit", default=50, type=int, show_default=True)
def stock_low(limit: int) -> None:
    """List active variants at or below their low-stock threshold."""
    handler = ShowStockLevelsHandler(catalog_repository(), stock_ledger())
    levels = handler.low_stock(limit)

    if not levels:
        click.echo("No variants are low on stock.")
        return

    click.echo(f"{'SKU':<12} {'Name':<24} {'Stock':>6} {'Threshold':>10}")
    click.echo("-" * 55)
    for lvl in levels:
        click.echo(f"{lvl.sku:<12} {lvl.name:<24} {lvl.stock:>6} {lvl.low_stock_threshold:>10}")
