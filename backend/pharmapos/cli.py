# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pharmapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo [--shop-id 1]
#   Add a salesman, a customer, and a handful of medicines and cosmetics.
#
# Catalog inspection:
# - python -m flask catalog list --type medicine [--shop-id 1]
#   List sellable items (stock > 0).
#
# Sales inspection/repair:
# - python -m flask sales show RX-1A2B3C
#   Print a sale, its items, and its return state.
# - python -m flask sales refresh-return-status RX-1A2B3C
#   Recompute a sale's return roll-up from its items.

from datetime import date, timedelta
from decimal import Decimal

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Medicine, Cosmetic, Salesman, Customer
from .services import catalog_service, return_service, sales_service
from .services.catalog_service import CatalogError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema is up to date.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' for sample data.")


@system_group.command('seed-demo')
@click.option('--shop-id', type=int, default=None, help='Shop the demo rows belong to')
@with_appcontext
def seed_demo(shop_id):
    """Idempotently add demo salesman, customer, and stock."""
    db.create_all()
    today = date.today()

    if not db.session.query(Salesman).filter_by(shop_id=shop_id).first():
        db.session.add(Salesman(shop_id=shop_id, name="Counter One", assigned_counter="1"))
        click.echo("PASS Created salesman: Counter One")

    if not db.session.query(Customer).filter_by(shop_id=shop_id, phone="0300-0000000").first():
        db.session.add(Customer(shop_id=shop_id, name="Walk-in Regular", phone="0300-0000000"))
        click.echo("PASS Created customer: Walk-in Regular")

    demo_medicines = [
        dict(name="Paracetamol 500mg", batch_no="PCM-001", quantity=200,
             selling_price=Decimal("2.50"), purchase_price=Decimal("1.60"),
             selling_type="per_pack", units_per_pack=10, price_per_pack=Decimal("24.00"),
             expiry_date=today + timedelta(days=365)),
        dict(name="Amoxicillin Syrup", batch_no="AMX-014", quantity=30,
             selling_price=Decimal("180.00"), purchase_price=Decimal("130.00"),
             expiry_date=today + timedelta(days=200)),
        dict(name="Insulin Glargine", batch_no="INS-003", quantity=12,
             selling_price=Decimal("2400.00"), purchase_price=Decimal("2050.00"),
             is_fridge_item=True, expiry_date=today + timedelta(days=90)),
    ]
    for row in demo_medicines:
        if not db.session.query(Medicine).filter_by(shop_id=shop_id, batch_no=row["batch_no"]).first():
            db.session.add(Medicine(shop_id=shop_id, **row))
            click.echo(f"PASS Created medicine: {row['name']}")

    if not db.session.query(Cosmetic).filter_by(shop_id=shop_id, batch_no="SUN-220").first():
        db.session.add(Cosmetic(
            shop_id=shop_id, name="Sunblock SPF 50", brand="Solaris", batch_no="SUN-220",
            quantity=25, selling_price=Decimal("950.00"), purchase_price=Decimal("700.00"),
            expiry_date=today + timedelta(days=540),
        ))
        click.echo("PASS Created cosmetic: Sunblock SPF 50")

    db.session.commit()
    click.echo("PASS Demo data ready.")


@click.group('catalog')
def catalog_group():
    """Catalog inspection commands."""


@catalog_group.command('list')
@click.option('--type', 'item_type', type=click.Choice(sorted(catalog_service.ITEM_MODELS)), default='medicine', show_default=True)
@click.option('--shop-id', type=int, default=None)
@with_appcontext
def list_catalog(item_type, shop_id):
    """List sellable items (stock > 0)."""
    try:
        items = catalog_service.list_sellable_items(item_type, shop_id=shop_id)
    except CatalogError as e:
        raise click.ClickException(str(e))

    if not items:
        click.echo("No sellable items.")
        return

    click.echo(f"\n{'ID':<5} {'Name':<30} {'Batch':<12} {'Stock':>7} {'Price':>10} {'Expiry':<10}")
    click.echo("=" * 80)
    for item in items:
        expiry = item.expiry_date.isoformat() if item.expiry_date else "-"
        click.echo(f"{item.id:<5} {item.name[:30]:<30} {item.batch_no:<12} {item.quantity:>7} {item.selling_price!s:>10} {expiry:<10}")


@click.group('sales')
def sales_group():
    """Sale inspection and repair commands."""


def _sale_or_fail(receipt_number):
    sale = sales_service.get_sale_by_receipt(receipt_number)
    if not sale:
        raise click.ClickException(f"No sale with receipt {receipt_number}")
    return sale


@sales_group.command('show')
@click.argument('receipt_number')
@with_appcontext
def show_sale(receipt_number):
    """Print a sale, its items, and its return state."""
    sale = _sale_or_fail(receipt_number)

    click.echo(f"\nSale {sale.receipt_number} (ID: {sale.id}) on {sale.sale_date:%Y-%m-%d %H:%M}")
    click.echo(f"Salesman: {sale.salesman_name}   Customer: {sale.customer_name or '-'}")
    click.echo(f"Subtotal {sale.subtotal}  Discount {sale.discount_amount} ({sale.discount_percentage}%)  "
               f"Tax {sale.tax}  Total {sale.total_amount}  Profit {sale.total_profit}")
    click.echo(f"Return status: {sale.return_status}")
    click.echo("=" * 80)
    for item in sale.items:
        click.echo(f"{item.id:<5} {item.item_name[:30]:<30} x{item.quantity:<4} @ {item.unit_price!s:<10} "
                   f"= {item.total_price!s:<10} returned {item.return_quantity}/{item.quantity} ({item.return_status})")


@sales_group.command('refresh-return-status')
@click.argument('receipt_number')
@with_appcontext
def refresh_return_status(receipt_number):
    """Recompute a sale's return roll-up from its items."""
    sale = _sale_or_fail(receipt_number)
    sale = return_service.refresh_sale_return_status(sale.id)
    click.echo(f"PASS {sale.receipt_number}: return_status={sale.return_status}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(sales_group)
