# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/stockbook/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog seed-demo
#   Create a demo location, contacts, products (plain and with a Color group) and default accounts.
# - python -m flask catalog ensure-defaults
#   Give every group-less product its default variation and create default ledger accounts.
#
# Orders:
# - python -m flask orders next-number --order-type sale [--date 2024-05-01]
#   Preview the next document number.
# - python -m flask orders show 12
#   Print an order with lines, charges and payments.

import json

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import PersistenceError
from .extensions import db
from .models import Contact, Location, Order, Product, ProductVariation, VariationGroup
from .services.accounting_service import ensure_default_accounts
from .services.document_service import DocumentSequenceError, next_document_number
from .services.store_gateways import SqlNumberingGateway, ensure_default_variation, prefix_for
from .time_utils import parse_iso_date, today


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


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
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('catalog')
def catalog_group():
    """Catalog bootstrap and repair commands."""


@catalog_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Idempotently create demo reference data for local development."""
    location = Location.query.filter_by(code="MAIN").first()
    if location is None:
        location = Location(name="Main Store", code="MAIN")
        db.session.add(location)
        click.echo("PASS Created location: Main Store")

    if Contact.query.filter_by(name="Walk-in Wholesale").first() is None:
        db.session.add(Contact(name="Walk-in Wholesale", contact_type="customer", customer_type="wholesale"))
    if Contact.query.filter_by(name="Demo Supplier").first() is None:
        db.session.add(Contact(name="Demo Supplier", contact_type="supplier"))

    if Product.query.filter_by(sku="CLOTH-001").first() is None:
        plain = Product(sku="CLOTH-001", name="Cotton Lawn", unit="m", price_buy=300, price_retail=450, price_wholesale=400)
        db.session.add(plain)
        ensure_default_variation(plain)
        click.echo("PASS Created product: Cotton Lawn (default variation)")

    if Product.query.filter_by(sku="SHIRT-001").first() is None:
        shirt = Product(sku="SHIRT-001", name="Shirt", unit="pc", price_buy=800, price_retail=1200, price_wholesale=1000)
        color = VariationGroup(name="Color")
        shirt.groups.append(color)
        for value, suffix in (("Red", "RED"), ("Blue", "BLU")):
            db.session.add(
                ProductVariation(
                    product=shirt,
                    group=color,
                    name=value,
                    sku_suffix=suffix,
                    price_buy=800,
                    price_retail=1200,
                    price_wholesale=1000,
                )
            )
        db.session.add(shirt)
        click.echo("PASS Created product: Shirt (Color: Red, Blue)")

    db.session.commit()

    try:
        ensure_default_accounts()
    except PersistenceError as e:
        raise click.ClickException(e.message)
    click.echo("DONE Demo data ready")


@catalog_group.command('ensure-defaults')
@with_appcontext
def ensure_defaults():
    """Backfill default variations and default ledger accounts."""
    created = 0
    for product in Product.query.order_by(Product.id).all():
        if ensure_default_variation(product) is not None:
            created += 1
            click.echo(f"PASS Default variation for {product.sku}")
    db.session.commit()

    try:
        cash, bank = ensure_default_accounts()
    except PersistenceError as e:
        raise click.ClickException(e.message)
    click.echo(f"DONE {created} default variation(s) created; accounts: {cash.name}, {bank.name}")


@click.group('orders')
def orders_group():
    """Order inspection commands."""


@orders_group.command('next-number')
@click.option('--order-type', type=click.Choice(['sale', 'purchase']), default='sale')
@click.option('--format', 'fmt', default=None, help='long | short | custom (default from config)')
@click.option('--date', 'date_str', default=None, help='Reference date YYYY-MM-DD (default today)')
@with_appcontext
def next_number(order_type, fmt, date_str):
    """Preview the next document number without reserving it."""
    try:
        reference_date = parse_iso_date(date_str) or today()
    except ValueError:
        raise click.BadParameter("date must be YYYY-MM-DD", param_hint="--date")

    try:
        number = next_document_number(
            SqlNumberingGateway(),
            prefix=prefix_for(order_type),
            fmt=fmt or current_app.config.get("DOCUMENT_NUMBER_FORMAT", "long"),
            reference_date=reference_date,
            template=current_app.config.get("DOCUMENT_NUMBER_TEMPLATE") or None,
        )
    except DocumentSequenceError as e:
        raise click.ClickException(e.message)

    click.echo(number.value)
    if number.warning is not None:
        click.echo(f"WARN {number.warning.message}", err=True)


@orders_group.command('show')
@click.argument('order_id', type=int)
@with_appcontext
def show_order(order_id):
    """Print one order as JSON."""
    order = db.session.get(Order, order_id)
    if order is None:
        raise click.ClickException(f"Order {order_id} not found")
    click.echo(json.dumps(order.to_dict(), indent=2))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(orders_group)
