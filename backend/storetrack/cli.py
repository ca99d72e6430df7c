# Overview: Flask CLI command groups for bootstrap and account management.

# backend/storetrack/cli.py
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
#
# Accounts:
# - python -m flask owners create --name "Ada" --email ada@example.com --store-name "Corner Shop"
#   Create a store and its owner (prompts for password).
# - python -m flask staff create --store-id 1 --name "Sam" --email sam@example.com
#   Create a staff account in an existing store.
# - python -m flask staff list --store-id 1

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store
from .services.auth_service import register_owner, create_staff
from .services.staff_service import list_staff
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the sale ledger!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('owners')
def owners_group():
    """Store owner accounts."""


@owners_group.command('create')
@click.option('--name', prompt=True, help='Owner name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--store-name', default=None, help='Store name (defaults to "<name>\'s Store")')
@click.option('--role', type=click.Choice(['admin', 'manager']), default='admin', help='Role')
@with_appcontext
def create_owner_cli(name, email, password, store_name, role):
    """Create a store and its owner account."""
    try:
        user = register_owner(name, email, password, store_name=store_name, role=role)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created owner {user.email} (ID: {user.id}) for store ID {user.store_id}")


@click.group('staff')
def staff_group():
    """Staff accounts."""


@staff_group.command('create')
@click.option('--store-id', type=int, required=True, help='Store ID')
@click.option('--name', prompt=True, help='Staff name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(['admin', 'manager', 'staff']), default='staff', help='Role')
@with_appcontext
def create_staff_cli(store_id, name, email, password, role):
    """Create a staff account in an existing store."""
    if db.session.get(Store, store_id) is None:
        raise click.ClickException(f"Store {store_id} not found")
    try:
        staff = create_staff(store_id, name, email, password, role=role)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created staff {staff.email} (ID: {staff.id}) in store {store_id}")


@staff_group.command('list')
@click.option('--store-id', type=int, required=True, help='Store ID')
@with_appcontext
def list_staff_cli(store_id):
    staff = list_staff(store_id)
    if not staff:
        click.echo("No staff found.")
        return
    for s in staff:
        status = "active" if s.is_active else "inactive"
        click.echo(f"{s.id:>5}  {s.email:<40} {s.role:<8} {status}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(owners_group)
    app.cli.add_command(staff_group)
