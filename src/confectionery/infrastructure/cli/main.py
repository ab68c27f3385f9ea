import click

from confectionery.config import configure_logging
from confectionery.infrastructure.cli.catalog_commands import (
    catalog_add_product,
    catalog_add_variant,
    catalog_list,
    catalog_price,
)
from confectionery.infrastructure.cli.order_commands import (
    order_cancel,
    order_confirm,
    order_create,
    order_list,
    order_release_stock,
    order_resume_cancel,
    order_shipping,
    order_show,
    order_status,
    order_validate_cart,
    order_whatsapp_sent,
)
from confectionery.infrastructure.cli.stock_commands import (
    stock_adjust,
    stock_low,
    stock_movements,
    stock_restock,
)


@click.group()
def cli() -> None:
    """Confectionery store: pricing, stock and orders"""
    configure_logging()


@cli.group()
def order() -> None:
    """Manage orders."""


@cli.group()
def stock() -> None:
    """Manage stock."""


@cli.group()
def catalog() -> None:
    """Manage the catalog."""


# Register subcommands
order.add_command(order_cancel)
order.add_command(order_confirm)
order.add_command(order_create)
order.add_command(order_list)
order.add_command(order_release_stock)
order.add_command(order_resume_cancel)
order.add_command(order_shipping)
order.add_command(order_show)
order.add_command(order_status)
order.add_command(order_validate_cart)
order.add_command(order_whatsapp_sent)
stock.add_command(stock_adjust)
stock.add_command(stock_low)
stock.add_command(stock_movements)
stock.add_command(stock_restock)
catalog.add_command(catalog_add_product)
catalog.add_command(catalog_add_variant)
catalog.add_command(catalog_list)
catalog.add_command(catalog_price)
