"""CLI commands for the catalog (product parents and variants)."""

from __future__ import annotations

import click

from confectionery.application.manage_catalog import (
    AddParentHandler,
    AddVariantHandler,
    ListCatalogHandler,
    UpdatePriceHandler,
)
from confectionery.config import get_settings
from confectionery.domain.exceptions import DomainException
from confectionery.domain.model.value_objects import (
    DiscountKind,
    DiscountTier,
    FixedDiscount,
    TieredDiscount,
    to_percent,
)
from confectionery.infrastructure.bootstrap import catalog_repository, stock_ledger


def _parse_tiers(raw: str | None) -> TieredDiscount | None:
    """Parse '5:5,10:12.5' (min quantity : percent) into a TieredDiscount."""
    if not raw:
        return None
    tiers: list[DiscountTier] = []
    for pair in raw.split(","):
        if ":" not in pair:
            raise click.BadParameter(
                f"Invalid tier '{pair.strip()}'. Expected 'MIN_QTY:PERCENT'."
            )
        qty_str, percent_str = pair.strip().split(":", 1)
        try:
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(f"Invalid tier quantity '{qty_str}'.")
        tiers.append(DiscountTier(min_quantity=qty, discount_percent=to_percent(percent_str)))
    return TieredDiscount(tiers=tuple(tiers))


@click.command("add-product")
@click.option("--id", "parent_id", required=True, help="Product ID.")
@click.option("--name", required=True, help="Product name.")
@click.option("--tiers", help="Fallback tiers as 'MIN_QTY:PERCENT,...'.")
def catalog_add_product(parent_id: str, name: str, tiers: str | None) -> None:
    """Add a product that groups variants."""
    handler = AddParentHandler(catalog_repository())

    try:
        parent = handler.handle(parent_id, name, _parse_tiers(tiers))
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Product '{parent.id}' ({parent.name}) added")


@click.command("add-variant")
@click.option("--id", "variant_id", required=True, help="Variant ID.")
@click.option("--sku", required=True, help="Unique SKU.")
@click.option("--name", required=True, help="Variant name.")
@click.option("--product", "parent_id", required=True, help="Parent product ID.")
@click.option("--price", required=True, type=int, help="Base price in minor units.")
@click.option("--discount-percent", help="Fixed percentage discount.")
@click.option("--discount-amount", type=int, help="Fixed amount off per unit.")
@click.option("--tiers", help="Quantity tiers as 'MIN_QTY:PERCENT,...'.")
@click.option("--low-stock", "low_stock_threshold", type=int, help="Low-stock threshold.")
def catalog_add_variant(
    variant_id: str,
    sku: str,
    name: str,
    parent_id: str,
    price: int,
    discount_percent: str | None,
    discount_amount: int | None,
    tiers: str | None,
    low_stock_threshold: int | None,
) -> None:
    """Add a sellable variant. New variants start with zero stock."""
    if discount_percent and discount_amount:
        raise click.UsageError("Use either --discount-percent or --discount-amount, not both.")

    handler = AddVariantHandler(
        catalog_repository(), get_settings().default_low_stock_threshold
    )

    try:
        fixed = None
        if discount_percent:
            fixed = FixedDiscount(DiscountKind.PERCENTAGE, to_percent(discount_percent))
        elif discount_amount:
            fixed = FixedDiscount(DiscountKind.AMOUNT, discount_amount)
        variant = handler.handle(
            variant_id,
            sku,
            name,
            parent_id,
            price,
            fixed_discount=fixed,
            tiered_discount=_parse_tiers(tiers),
            low_stock_threshold=low_stock_threshold,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Variant '{variant.id}' ({variant.sku}) added at {variant.base_price}")


@click.command("price")
@click.option("--variant", "variant_id", required=True, help="Variant ID.")
@click.option("--price", required=True, type=int, help="New base price in minor units.")
def catalog_price(variant_id: str, price: int) -> None:
    """Update a variant's base price."""
    handler = UpdatePriceHandler(catalog_repository())

    try:
        handler.handle(variant_id, price)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Variant '{variant_id}' price updated to {price}")


@click.command("list")
def catalog_list() -> None:
    """List every variant with its current price and stock."""
    handler = ListCatalogHandler(catalog_repository(), stock_ledger(), get_settings().currency)
    lines = handler.handle()

    if not lines:
        click.echo("No variants found.")
        return

    click.echo(f"{'SKU':<12} {'Name':<24} {'Base':>14} {'Price':>14} {'Stock':>6}")
    click.echo("-" * 74)
    for line in lines:
        name = line.name if line.active else f"{line.name} (inactive)"
        click.echo(
            f"{line.sku:<12} {name:<24} {line.base_price:>14} {line.unit_price:>14} {line.stock:>6}"
        )
        for badge in line.tier_badges:
            click.echo(f"{'':<12} {badge}")
