# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/shopledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User bootstrap:
# - python -m flask users create --username shop1 --email shop1@example.com
#   Create a shop owner account.
#
# Stock inspection:
# - python -m flask stock show --product-id 1 [--limit 10]
#   Current stock and the most recent movements.
# - python -m flask stock verify [--product-id 1]
#   Compare each counter with the sum of its movement history. Exits 1 on mismatch.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, StockRecord
from .errors import InventoryError
from .services import stock_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables. Existing tables and data are left alone."""
    click.echo("BUILD  Creating tables...")
    db.create_all()
    click.echo("PASS Database initialized.")


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

    click.echo("PASS Database reset complete.")


@click.group('users')
def users_group():
    """User bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@with_appcontext
def create_user_cli(username, email):
    """Create a shop owner account."""
    username = username.strip()
    email = email.strip().lower()

    existing = db.session.query(User).filter(
        (User.username == username) | (User.email == email)
    ).first()
    if existing:
        click.echo(f"FAIL User '{existing.username}' already uses that username or email")
        return

    user = User(username=username, email=email, is_active=True)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user: {username} ({email}) with ID {user.id}")


@click.group('stock')
def stock_group():
    """Stock ledger inspection commands."""


@stock_group.command('show')
@click.option('--product-id', type=int, required=True, help='Product ID')
@click.option('--limit', type=int, default=10, show_default=True, help='Movements to show')
@with_appcontext
def show_stock(product_id, limit):
    """Show current stock and the latest movements for a product."""
    record = db.session.query(StockRecord).filter_by(product_id=product_id).first()
    if not record:
        click.echo(f"FAIL No stock record for product {product_id}")
        return

    product = record.product
    click.echo(f"{product.name} ({product.sku}): {record.current_stock} {product.unit}")
    entries, total = stock_service.get_movement_history(
        product.created_by_user_id, product_id, limit=limit
    )
    click.echo(f"Movements: {total} total, showing {len(entries)}")
    for m in entries:
        click.echo(
            f"  {m.occurred_at:%Y-%m-%d %H:%M:%S}  {m.movement_type:<10} "
            f"{m.signed_quantity:+d}  {m.notes or ''}"
        )


@stock_group.command('verify')
@click.option('--product-id', type=int, help='Check a single product (default: all)')
@with_appcontext
def verify_stock(product_id):
    """Check that every counter equals the signed sum of its movements."""
    if product_id:
        product_ids = [product_id]
    else:
        product_ids = [pid for (pid,) in db.session.query(StockRecord.product_id).order_by(StockRecord.product_id)]

    mismatches = 0
    for pid in product_ids:
        try:
            result = stock_service.verify_stock_record(pid)
        except InventoryError as e:
            click.echo(f"FAIL product {pid}: {e.message}")
            mismatches += 1
            continue
        if not result["ok"]:
            mismatches += 1
            click.echo(
                f"FAIL product {pid}: counter {result['actual']} != movements {result['expected']}"
            )

    if mismatches:
        click.echo(f"FAIL {mismatches} of {len(product_ids)} stock records inconsistent")
        click.get_current_context().exit(1)
    click.echo(f"PASS {len(product_ids)} stock records consistent")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stock_group)
