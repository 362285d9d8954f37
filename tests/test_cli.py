from datetime import datetime

import pytest

from minimarket.cli import SAMPLE_PRODUCTS
from minimarket.identity import Guest
from minimarket.model import Cart, InventoryLog, Product
from minimarket.services import CartStore


@pytest.fixture()
def runner(app):
    return app.test_cli_runner()


def test_seed_products_is_idempotent(runner, session):
    result = runner.invoke(args=["seed-products"])
    assert result.exit_code == 0
    assert f"{len(SAMPLE_PRODUCTS)} sample products added" in result.output

    result = runner.invoke(args=["seed-products"])
    assert "0 sample products added" in result.output
    assert session.query(Product).count() == len(SAMPLE_PRODUCTS)


def test_adjust_stock(runner, session, make_product):
    product = make_product(quantity=10)

    result = runner.invoke(args=["adjust-stock", str(product.id), "5", "--reason", "delivery"])

    assert result.exit_code == 0
    assert f"product {product.id}: 10 -> 15" in result.output
    entry = session.query(InventoryLog).one()
    assert (entry.type, entry.quantity, entry.reason) == ("stock_in", 5, "delivery")


def test_adjust_stock_unknown_product(runner):
    result = runner.invoke(args=["adjust-stock", "404", "1"])
    assert result.exit_code != 0
    assert "product not found" in result.output


def test_cleanup_carts(runner, session, make_product):
    product = make_product()
    CartStore(session).add_item(Guest("stale"), product.id, 1)
    session.commit()
    session.query(Cart).update({"expires_at": datetime(2000, 1, 1)})
    session.commit()

    result = runner.invoke(args=["cleanup-carts"])

    assert "1 expired carts deleted" in result.output
    assert session.query(Cart).count() == 0


def test_low_stock(runner, make_product):
    make_product(sku="MM-LOW-001", quantity=2, low_stock_threshold=5)
    make_product(sku="MM-OK-0002", quantity=50, low_stock_threshold=5)

    result = runner.invoke(args=["low-stock"])

    assert "MM-LOW-001" in result.output
    assert "MM-OK-0002" not in result.output
