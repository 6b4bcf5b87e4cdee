# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/pharmapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to pharmapos (PowerShell: $env:FLASK_APP="pharmapos").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Catalog:
# - python -m flask catalog seed-demo
#   Insert a handful of demo batches (several lots per product, mixed pack sizes).
# - python -m flask catalog list [--product "Panadol 500mg"]
#   List batches in FEFO order.
#
# Operators:
# - python -m flask operators create --name "Mona" --role pharmacist
#   Create an operator. Roles: owner, admin, manager, pharmacist, senior_cashier, cashier, delivery.
# - python -m flask operators list [--all]
#   List operators (use --all to include inactive).
# - python -m flask operators deactivate --operator-id 4
#   Deactivate an operator; their sales and returns stay on record.
#
# Shifts:
# - python -m flask shifts open --terminal MAIN --operator-id 1 --opening-cash 200
#   Open a shift on a terminal.
# - python -m flask shifts close --shift-id 3 --operator-id 1 --closing-cash 1250
#   Close a shift and print the drawer variance.
# - python -m flask shifts list [--terminal MAIN] [--status open]
#   List recent shifts.

import click
from datetime import timedelta
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Batch
from .permissions import KNOWN_ROLES
from .services import catalog_service, operator_service, shift_service
from .services.catalog_service import CatalogError
from .services.operator_service import OperatorError
from .services.shift_service import ShiftError
from .time_utils import utcnow


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

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask catalog seed-demo' to add demo stock.")


# =============================================================================
# CATALOG
# =============================================================================

@click.group('catalog')
def catalog_group():
    """Catalog seeding and inspection."""


DEMO_BATCHES = [
    # product, units_per_pack, stock (packs), price (per pack), days to expiry, category
    ("Panadol 500mg", 20, 12, "45.00", 60, "Analgesics"),
    ("Panadol 500mg", 20, 30, "45.00", 400, "Analgesics"),
    ("Augmentin 1g", 14, 8, "118.50", 200, "Antibiotics"),
    ("Brufen 400mg", 30, 15, "36.75", 90, "Analgesics"),
    ("Brufen 400mg", 30, 5, "36.75", 30, "Analgesics"),
    ("Vitamin C 1000mg", 1, 40, "12.00", 500, "Supplements"),
]


@catalog_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Insert demo batches. Skips if the catalog is not empty."""
    if db.session.query(Batch).count():
        click.echo("WARN  Catalog already has batches, skipping...")
        return

    today = utcnow().date()
    max_discount = current_app.config["DEFAULT_MAX_DISCOUNT_PERCENT"]
    for index, (name, upp, stock, price, days, category) in enumerate(DEMO_BATCHES, start=1):
        try:
            batch = catalog_service.create_batch(
                name,
                stock=stock,
                price=price,
                expiry_date=today + timedelta(days=days),
                units_per_pack=upp,
                max_discount_percent=max_discount,
                category=category,
                internal_code=f"DEMO-{index:03d}",
            )
            click.echo(f"PASS Created batch {batch.id}: {name} exp {batch.expiry_date} ({stock} x {upp})")
        except CatalogError as e:
            click.echo(f"FAIL {name}: {str(e)}")


@catalog_group.command('list')
@click.option('--product', 'product_name', help='Only this product')
@with_appcontext
def list_catalog(product_name):
    """List batches in FEFO order."""
    if product_name:
        batches = catalog_service.list_batches(product_name)
    else:
        batches = db.session.query(Batch).order_by(
            Batch.product_name.asc(), Batch.expiry_date.asc(), Batch.id.asc()
        ).all()

    if not batches:
        click.echo("No batches found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Product':<25} {'Expiry':<12} {'Stock':>10} {'Pack':>6} {'Price':>10} {'MaxDisc':>8}")
    click.echo("="*90)
    for batch in batches:
        click.echo(
            f"{batch.id:<5} {batch.product_name[:25]:<25} {batch.expiry_date.isoformat():<12} "
            f"{str(batch.stock):>10} {batch.pack_size:>6} {str(batch.price):>10} {str(batch.max_discount_percent):>8}"
        )
    click.echo("="*90 + "\n")


# =============================================================================
# OPERATORS
# =============================================================================

@click.group('operators')
def operators_group():
    """Operator management."""


@operators_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--role', prompt=True, type=click.Choice(sorted(KNOWN_ROLES)), help='Role')
@with_appcontext
def create_operator_cli(name, role):
    """Create an operator."""
    try:
        operator = operator_service.create_operator(name, role)
        click.echo(f"PASS Created operator {operator.id}: {operator.name} ({operator.role})")
    except OperatorError as e:
        click.echo(f"FAIL {str(e)}")


@operators_group.command('deactivate')
@click.option('--operator-id', type=int, required=True, help='Operator to deactivate')
@with_appcontext
def deactivate_operator_cli(operator_id):
    """Deactivate an operator (history is kept)."""
    try:
        operator = operator_service.deactivate_operator(operator_id)
        click.echo(f"PASS Deactivated operator {operator.id}: {operator.name}")
    except OperatorError as e:
        click.echo(f"FAIL {str(e)}")


@operators_group.command('list')
@click.option('--all', 'show_all', is_flag=True, help='Show inactive operators too')
@with_appcontext
def list_operators_cli(show_all):
    """List operators."""
    operators = operator_service.list_operators(include_inactive=show_all)
    if not operators:
        click.echo("No operators found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Name':<25} {'Role':<16} {'Active'}")
    click.echo("="*60)
    for operator in operators:
        click.echo(f"{operator.id:<5} {operator.name[:25]:<25} {operator.role:<16} {'Yes' if operator.is_active else 'No'}")
    click.echo("="*60 + "\n")


# =============================================================================
# SHIFTS
# =============================================================================

@click.group('shifts')
def shifts_group():
    """Shift (register session) management."""


@shifts_group.command('open')
@click.option('--terminal', 'terminal_code', default=None, help='Terminal code (default: TERMINAL_CODE)')
@click.option('--operator-id', type=int, required=True, help='Operator opening the shift')
@click.option('--opening-cash', default="0", help='Cash in the drawer at open')
@with_appcontext
def open_shift_cli(terminal_code, operator_id, opening_cash):
    """Open a shift on a terminal."""
    terminal_code = terminal_code or current_app.config["TERMINAL_CODE"]
    try:
        shift = shift_service.open_shift(terminal_code, operator_id, opening_cash)
        click.echo(f"PASS Opened shift {shift.id} on {terminal_code} with {shift.opening_cash} in drawer")
    except (ShiftError, ValueError) as e:
        click.echo(f"FAIL {str(e)}")


@shifts_group.command('close')
@click.option('--shift-id', type=int, required=True, help='Shift to close')
@click.option('--operator-id', type=int, required=True, help='Operator closing the shift')
@click.option('--closing-cash', required=True, help='Counted drawer cash')
@click.option('--notes', default=None, help='Close-out notes')
@with_appcontext
def close_shift_cli(shift_id, operator_id, closing_cash, notes):
    """Close a shift and print the variance."""
    try:
        shift = shift_service.close_shift(shift_id, closing_cash, operator_id, notes=notes)
        click.echo(f"PASS Closed shift {shift.id}")
        click.echo(f"   expected cash: {shift.expected_cash}")
        click.echo(f"   counted cash:  {shift.closing_cash}")
        click.echo(f"   variance:      {shift.variance}")
    except (ShiftError, ValueError) as e:
        click.echo(f"FAIL {str(e)}")


@shifts_group.command('list')
@click.option('--terminal', 'terminal_code', default=None, help='Filter by terminal')
@click.option('--status', type=click.Choice(['open', 'closed']), help='Filter by status')
@click.option('--limit', type=int, default=20, help='Max shifts to show')
@with_appcontext
def list_shifts_cli(terminal_code, status, limit):
    """List recent shifts."""
    shifts = shift_service.list_shifts(terminal_code=terminal_code, status=status, limit=limit)
    if not shifts:
        click.echo("No shifts found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Terminal':<10} {'Status':<8} {'Opened':<20} {'Cash':>10} {'Card':>10} {'Returns':>10} {'Balance':>10}")
    click.echo("="*100)
    for shift in shifts:
        click.echo(
            f"{shift.id:<5} {shift.terminal_code:<10} {shift.status:<8} "
            f"{shift.opened_at.strftime('%Y-%m-%d %H:%M'):<20} {str(shift.cash_total):>10} "
            f"{str(shift.card_total):>10} {str(shift.returns_total):>10} {str(shift.available_balance):>10}"
        )
    click.echo("="*100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(operators_group)
    app.cli.add_command(shifts_group)
