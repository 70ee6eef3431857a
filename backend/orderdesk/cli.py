# Overview: Flask CLI command groups for bootstrap, inspection, and audits.

# backend/orderdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo
#   Idempotently create demo categories, products and stock.
#
# Inventory:
# - python -m flask inventory list [--low-only]
#   List stock per product with derived status.
# - python -m flask inventory restock --product-id 1 --quantity 20
#   Add received stock (writes a ledger IN entry).
#
# Orders:
# - python -m flask orders audit
#   Verify totals, non-negative stock and ledger consistency; exits 1 on violations.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import FulfillmentError
from .models import Category, Inventory, Product
from .models.inventory import STATUS_AVAILABLE
from .money import to_money
from .services import inventory_service
from .services.audit_service import audit_orders


DEMO_CATALOG = [
    ("Printing", [("Document Print (A4)", "5.00", 500), ("Photo Print 4R", "15.00", 200)]),
    ("Lamination", [("Lamination A4", "25.00", 100)]),
    ("Supplies", [("Ballpen Black", "10.00", 150), ("Folder Long", "8.00", 80)]),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@system_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create demo categories and products with opening stock (skips existing ones)."""
    created = 0
    for category_name, products in DEMO_CATALOG:
        category = db.session.query(Category).filter_by(name=category_name).first()
        if not category:
            category = Category(name=category_name)
            db.session.add(category)
            db.session.flush()

        for name, price, opening_stock in products:
            if db.session.query(Product).filter_by(name=name).first():
                continue
            product = Product(name=name, price=to_money(price), category_id=category.id, is_active=True)
            product.inventory = Inventory(quantity=0)
            db.session.add(product)
            db.session.commit()

            inventory_service.restock(product.id, opening_stock)
            created += 1
            click.echo(f"PASS Created {name} with {opening_stock} units")

    db.session.commit()
    click.echo(f"PASS Seeded {created} product(s)")


@click.group('inventory')
def inventory_group():
    """Inventory inspection and restocking."""


@inventory_group.command('list')
@click.option('--low-only', is_flag=True, help='Only show low or out-of-stock products')
@with_appcontext
def list_inventory(low_only):
    """List stock per product with derived status."""
    rows = (
        db.session.query(Inventory)
        .join(Product, Product.id == Inventory.product_id)
        .order_by(Product.name.asc())
        .all()
    )
    if low_only:
        rows = [inv for inv in rows if inventory_service.derive_status(inv) != STATUS_AVAILABLE]

    if not rows:
        click.echo("No inventory found.")
        return

    click.echo("\n" + "=" * 70)
    click.echo(f"{'Product':<8} {'Name':<30} {'Qty':>6} {'Reorder':>8} {'Status':<10}")
    click.echo("=" * 70)
    for inv in rows:
        click.echo(
            f"{inv.product_id:<8} {inv.product.name[:30]:<30} {inv.quantity:>6} "
            f"{inv.reorder_level:>8} {inventory_service.derive_status(inv):<10}"
        )


@inventory_group.command('restock')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--quantity', type=click.IntRange(min=1), required=True, help='Units received')
@click.option('--user-id', type=int, default=None, help='Acting user id recorded on the ledger')
@with_appcontext
def restock(product_id, quantity, user_id):
    """Add received stock to a product."""
    try:
        inventory = inventory_service.restock(product_id, quantity, user_id=user_id)
    except FulfillmentError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Product {product_id} now has {inventory.quantity} units")


@click.group('orders')
def orders_group():
    """Order maintenance commands."""


@orders_group.command('audit')
@with_appcontext
def audit():
    """Verify order totals, stock levels and ledger consistency."""
    violations = audit_orders()
    if not violations:
        click.echo("PASS No violations found")
        return

    for v in violations:
        click.echo(f"FAIL [{v['kind']}] {v['message']}")
    click.echo(f"\n{len(violations)} violation(s) found")
    raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(orders_group)
