# Overview: Flask CLI command groups for bootstrap and sample data.

# backend/cari/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the factory (PowerShell: $env:FLASK_APP="cari:create_app").
# - Use: python -m flask <group> <command> [options]
#
# - python -m flask system init-db
#   Create any missing tables (idempotent; migrations remain the source of truth).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed
#   Insert sample customers, suppliers and a week of transactions into an empty database.
# - python -m flask system balances
#   Print every counterparty with its derived balance.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services.balance_service import get_balance_totals, list_counterparties_with_balance
from .services.seed_service import seed_database


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system seed' for sample data.")


@system_group.command('seed')
@with_appcontext
def seed():
    """Insert sample data when the database has no counterparties."""
    if seed_database():
        click.echo("PASS Seed data inserted.")
    else:
        click.echo("SKIP Database already has counterparties; nothing seeded.")


@system_group.command('balances')
@click.option('--type', 'counterparty_type', type=click.Choice(['customer', 'supplier']), default=None)
@with_appcontext
def balances(counterparty_type):
    """List counterparties with their derived balances."""
    rows = list_counterparties_with_balance(counterparty_type=counterparty_type)
    if not rows:
        click.echo("No counterparties.")
        return
    for row in rows:
        click.echo(f"{row['id']:>5}  {row['type']:<8}  {row['name']:<32}  {row['balance']:>14}")

    totals = get_balance_totals()
    click.echo(f"Receivables: {totals['total_receivables']:.2f}  Payables: {totals['total_payables']:.2f}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
