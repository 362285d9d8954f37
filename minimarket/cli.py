# minimarket/cli.py
import click

from .errors import OrderError
from .extensions import db
from .model import Product
from .services import CartStore, InventoryService, ProductCatalog, atomic

SAMPLE_PRODUCTS = [
    {"name": "Onigiri de atún", "sku": "MM-ONI-001", "slug": "onigiri-atun", "price": 1990, "quantity": 40},
    {"name": "Ramen instantáneo", "sku": "MM-RAM-002", "slug": "ramen-instantaneo", "price": 1290, "quantity": 120},
    {"name": "Té verde matcha 500ml", "sku": "MM-TEA-003", "slug": "te-verde-matcha", "price": 1590, "quantity": 60},
    {"name": "Pocky chocolate", "sku": "MM-POC-004", "slug": "pocky-chocolate", "price": 2490, "quantity": 8},
    {"name": "Salsa de soya 1L", "sku": "MM-SOY-005", "slug": "salsa-soya", "price": 4990, "quantity": 25},
    {"name": "Bolsa reutilizable", "sku": "MM-BAG-006", "slug": "bolsa-reutilizable", "price": 500,
     "quantity": 0, "track_inventory": False},
]


@click.command("seed-products")
def seed_products():
    """Insert the sample catalog (skips SKUs that already exist)."""
    created = 0
    for data in SAMPLE_PRODUCTS:
        if Product.query.filter_by(sku=data["sku"]).first():
            continue
        db.session.add(Product(**data))
        created += 1
    db.session.commit()
    click.echo(f"{created} sample products added")


@click.command("adjust-stock")
@click.argument("product_id", type=int)
@click.argument("quantity", type=int)
@click.option("--type", "type_", type=click.Choice(["stock_in", "stock_out", "adjustment"]),
              default="stock_in", show_default=True)
@click.option("--reason", default=None)
def adjust_stock(product_id, quantity, type_, reason):
    try:
        with atomic(db.session):
            entry = InventoryService(db.session).adjust(product_id, quantity, type_, reason=reason)
            line = f"product {product_id}: {entry.previous_quantity} -> {entry.new_quantity}"
    except OrderError as e:
        raise click.ClickException(e.message)
    click.echo(line)


@click.command("cleanup-carts")
def cleanup_carts():
    """Delete guest carts past their expiry."""
    with atomic(db.session):
        deleted = CartStore(db.session).cleanup_expired()
    click.echo(f"{deleted} expired carts deleted")


@click.command("low-stock")
def low_stock():
    for p in ProductCatalog(db.session).low_stock():
        click.echo(f"{p.id}\t{p.sku}\t{p.quantity}/{p.low_stock_threshold}\t{p.name}")


def register_cli(app):
    app.cli.add_command(seed_products)
    app.cli.add_command(adjust_stock)
    app.cli.add_command(cleanup_carts)
    app.cli.add_command(low_stock)
