"""End-to-end tests of the click CLI against a temporary data directory."""

import json

import pytest
from click.testing import CliRunner

from confectionery.config import reset_settings
from confectionery.infrastructure.cli.main import cli


@pytest.fixture
def runner(tmp_path, monkeypatch):
    monkeypatch.setenv("CONFECTIONERY_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("CONFECTIONERY_LOG_LEVEL", "ERROR")
    reset_settings()
    yield CliRunner()
    reset_settings()


def _invoke(runner, *args):
    result = runner.invoke(cli, list(args))
    assert result.exit_code == 0, result.output
    return result


@pytest.fixture
def stocked(runner):
    _invoke(runner, "catalog", "add-product", "--id", "p1", "--name", "Chocolates")
    _invoke(
        runner, "catalog", "add-variant",
        "--id", "v1", "--sku", "CAR-BOX", "--name", "Caramel box", "--product", "p1",
        "--price", "10000", "--discount-percent", "10", "--tiers", "5:5,10:10",
    )
    _invoke(runner, "stock", "restock", "--variant", "v1", "--quantity", "20", "--supplier", "Acme")
    return runner


def test_catalog_list(stocked):
    result = _invoke(stocked, "catalog", "list")
    assert "CAR-BOX" in result.output
    assert "9.000 PYG" in result.output
    assert "5+ @ 8.550 PYG" in result.output


def test_validate_cart_reports_server_prices(stocked):
    result = _invoke(stocked, "order", "validate-cart", "--items", "v1:7:8000:56000")
    payload = json.loads(result.output[result.output.index("{"):result.output.rindex("}") + 1])
    assert payload["valid"] is False
    assert payload["serverPrices"][0]["finalPricePerUnit"] == 8550


def test_create_show_and_cancel(stocked):
    result = _invoke(
        stocked, "order", "create",
        "--name", "Ana", "--email", "ana@example.com", "--phone", "0981123456",
        "--items", "v1:7:8550:59850",
    )
    assert "created" in result.output
    assert "https://wa.me/" in result.output
    number = result.output.split("Order ", 1)[1].split()[0]

    shown = _invoke(stocked, "order", "show", "--number", number)
    assert "59.850 PYG" in shown.output

    _invoke(stocked, "order", "cancel", "--number", number, "--reason", "Customer changed their mind")
    movements = _invoke(stocked, "stock", "movements", "--order", number)
    assert "sale" in movements.output
    assert "return" in movements.output

    listing = _invoke(stocked, "order", "list", "--status", "cancelled")
    assert number in listing.output


def test_insufficient_stock_is_a_clean_error(stocked):
    result = stocked.invoke(
        cli,
        [
            "order", "create", "--name", "Ana", "--email", "ana@example.com",
            "--phone", "0981123456", "--items", "v1:50",
        ],
    )
    assert result.exit_code == 1
    assert "Insufficient stock" in result.output


def test_bad_item_format(stocked):
    result = stocked.invoke(cli, ["order", "validate-cart", "--items", "v1"])
    assert result.exit_code == 2


def test_adjust_and_low_stock(stocked):
    _invoke(stocked, "stock", "adjust", "--variant", "v1", "--quantity", "-17", "--reason", "Inventory count")
    result = _invoke(stocked, "stock", "low")
    assert "CAR-BOX" in result.output


def test_release_stock_refuses_placed_orders(stocked):
    result = _invoke(
        stocked, "order", "create",
        "--name", "Ana", "--email", "ana@example.com", "--phone", "0981123456",
        "--items", "v1:2",
    )
    number = result.output.split("Order ", 1)[1].split()[0]

    refused = stocked.invoke(cli, ["order", "release-stock", "--number", number])
    assert refused.exit_code == 1
    assert "cancel it" in refused.output

    missing = stocked.invoke(cli, ["order", "release-stock", "--number", "QUE-20260101-999"])
    assert missing.exit_code == 1
    assert "No stock was sold" in missing.output
