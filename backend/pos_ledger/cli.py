# Overview: Flask CLI command groups for bootstrap, users and stock maintenance.

# backend/pos_ledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask db upgrade
#   Build the schema from the Alembic revisions in backend/migrations.
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username admin --password "Password123" --role admin
# - python -m flask users list
#
# Stock maintenance:
# - python -m flask inventory reconcile [--all]
#   Compare every product's stock counter with its ledger sum; exit code 1 on drift.
# - python -m flask inventory restock --username admin --product-id 3 --quantity 12 [--note "Delivery"]

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import PosError
from .models import User, USER_ROLES
from .services.auth_service import create_user
from .services.session_service import SessionContext
from .services import inventory_service, ledger_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm destructive reset')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        raise SystemExit(1)
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='cashier', show_default=True, help='Role')
@click.option('--full-name', default=None, help='Display name')
@click.option('--email', default=None, help='Email address')
@with_appcontext
def create_user_cli(username, password, role, full_name, email):
    """Create a user (password hashed with bcrypt)."""
    try:
        user = create_user(
            username=username,
            password=password,
            role=role,
            full_name=full_name,
            email=email,
        )
    except PosError as e:
        db.session.rollback()
        click.echo(f"FAIL {e.message}")
        raise SystemExit(1)
    click.echo(f"PASS Created user {user.username} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with role and active status."""
    for user in db.session.query(User).order_by(User.id.asc()).all():
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>4}  {user.username:<20} {user.role:<8} {status}")


@click.group('inventory')
def inventory_group():
    """Stock maintenance commands."""


@inventory_group.command('reconcile')
@click.option('--all', 'include_inactive', is_flag=True, help='Include soft-deleted products')
@with_appcontext
def reconcile(include_inactive):
    """Recompute stock from the ledger and report drift."""
    result = ledger_service.reconcile_all(include_inactive=include_inactive)
    if not result.success:
        click.echo(f"FAIL {result.error}")
        raise SystemExit(1)

    report = result.data
    for row in report["products"]:
        if row["drift"]:
            click.echo(
                f"DRIFT product {row['product_id']} {row['name']!r}: "
                f"counter={row['stock_quantity']} ledger={row['ledger_quantity']} drift={row['drift']:+d}"
            )
    click.echo(f"Checked {report['checked_count']} products, {report['drift_count']} with drift")
    if report["drift_count"]:
        raise SystemExit(1)


@inventory_group.command('restock')
@click.option('--username', required=True, help='Acting user recorded on the ledger entry')
@click.option('--product-id', type=int, required=True)
@click.option('--quantity', type=int, required=True)
@click.option('--note', default=None)
@with_appcontext
def restock(username, product_id, quantity, note):
    """Restock a product and append a ledger entry."""
    user = db.session.query(User).filter_by(username=username, is_active=True).first()
    if not user:
        click.echo(f"FAIL Active user {username!r} not found")
        raise SystemExit(1)

    result = inventory_service.restock_product(SessionContext(user=user), product_id, quantity, note=note)
    if not result.success:
        click.echo(f"FAIL {result.error}")
        raise SystemExit(1)
    click.echo(f"PASS Product {product_id} stock is now {result.data['stock_quantity']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
