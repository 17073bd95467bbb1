# Overview: Flask CLI command groups for bootstrap, reconciliation, and inspection.

# backend/voyapos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--store "Main Store"]
#   Idempotent bootstrap: creates tables, a default store, and admin/cashier users.
#
# Users:
# - python -m flask users create --username admin --email admin@voya.local --password "Password123!" --role admin
#   Create a user (prompts if options are omitted).
#
# Inventory:
# - python -m flask inventory sync
#   Pull per-location availability from the commerce platform and overwrite local stock.
# - python -m flask inventory refresh
#   Sync locations, then catalog, then stock.
# - python -m flask inventory summary [--low-stock-threshold 5]
#   Print per-store stock totals.
# - python -m flask inventory sync-loop --interval 3600
#   Run the stock sync on an APScheduler interval job until interrupted.

from datetime import datetime, timezone

import click
from apscheduler.schedulers.blocking import BlockingScheduler
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, User
from .models.auth import ROLE_ADMIN, ROLE_CASHIER, ROLES
from .scheduler import run_scheduled_sync
from .services.auth_service import create_user
from .services.errors import PosError
from .services.reconcile_service import refresh_all, sync_inventory
from .services.reporting_service import inventory_summary
from .services.sync_state import run_sync


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--store', 'store_name', default='Main Store', help='Default store name')
@with_appcontext
def init_system(store_name):
    """
    Initialize VoyaPOS: tables, a default store, and default users.

    Creates:
    - All tables (db.create_all; use `flask db upgrade` for managed schemas)
    - Default store (if no store exists)
    - Users: admin/admin@voya.local, cashier/cashier@voya.local
    - All passwords default to: "Password123!"

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing VoyaPOS...")

    db.create_all()

    store = db.session.query(Store).order_by(Store.id).first()
    if not store:
        store = Store(name=store_name, is_active=True)
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created default store: {store.name} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    default_password = "Password123!"
    default_users = [
        ("admin", "admin@voya.local", ROLE_ADMIN),
        ("cashier", "cashier@voya.local", ROLE_CASHIER),
    ]

    for username, email, role in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(
                username=username,
                email=email,
                password=default_password,
                role=role,
                store_id=store.id,
            )
            click.echo(f"PASS Created user: {username} ({email}) with role '{role}'")
        except PosError as e:
            db.session.rollback()
            click.echo(f"FAIL Failed to create user '{username}': {e.message}")

    click.echo("\nDONE VoyaPOS initialized")
    click.echo("   admin   -> admin@voya.local   / Password123!")
    click.echo("   cashier -> cashier@voya.local / Password123!")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(ROLES), default=ROLE_CASHIER, show_default=True)
@click.option('--store-id', type=int, default=None, help='Assigned store (required for cashiers)')
@with_appcontext
def create_user_command(username, email, password, role, store_id):
    """Create a user."""
    try:
        user = create_user(username=username, email=email, password=password, role=role, store_id=store_id)
    except PosError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created user: {user.username} (ID: {user.id}, role: {user.role})")


@click.group('inventory')
def inventory_group():
    """Inventory reconciliation and reporting commands."""


def _echo_errors(errors: list[dict], limit: int = 20) -> None:
    for error in errors[:limit]:
        click.echo(f"  FAIL {error}")
    if len(errors) > limit:
        click.echo(f"  ... and {len(errors) - limit} more")


@inventory_group.command('sync')
@with_appcontext
def sync_command():
    """Overwrite local stock with the platform's per-location availability."""
    try:
        result = run_sync(sync_inventory)
    except PosError as e:
        raise click.ClickException(e.message)

    click.echo(
        f"PASS Synced {result.total_stores_considered} stores x "
        f"{result.total_products_considered} products: {result.updated_count} updated"
    )
    if result.errors:
        click.echo(f"WARN  {len(result.errors)} errors:")
        _echo_errors(result.errors)


@inventory_group.command('refresh')
@with_appcontext
def refresh_command():
    """Sync locations, catalog and stock, in that order."""
    try:
        result = run_sync(refresh_all)
    except PosError as e:
        raise click.ClickException(e.message)

    for section in ("stores", "products"):
        stats = result[section]
        click.echo(f"PASS {section}: {stats['created']} created, {stats['updated']} updated")
        _echo_errors(stats["errors"])
    inventory = result["inventory"]
    click.echo(f"PASS inventory: {inventory['updated_count']} updated, {inventory['error_count']} errors")
    _echo_errors(inventory["errors"])


@inventory_group.command('summary')
@click.option('--low-stock-threshold', type=int, default=None)
@with_appcontext
def summary_command(low_stock_threshold):
    """Print per-store stock totals."""
    summary = inventory_summary(low_stock_threshold)
    click.echo(
        f"Stores: {summary['total_stores']}  Products: {summary['total_products']}  "
        f"Units: {summary['grand_total_quantity']}  Value: {summary['total_inventory_value']:.2f}"
    )
    for store in summary["by_store"]:
        click.echo(
            f"  {store['store_name']:<30} qty={store['total_quantity']:<8} "
            f"low={store['low_stock_count']:<4} out={store['out_of_stock_count']:<4} "
            f"value={store['total_value']:.2f}"
        )


@inventory_group.command('sync-loop')
@click.option('--interval', type=int, default=3600, show_default=True, help='Seconds between runs')
@click.option('--max-runs', type=int, default=None, help='Stop after N runs')
@with_appcontext
def sync_loop_command(interval, max_runs):
    """Run the stock sync on a fixed interval until interrupted."""
    app = current_app._get_current_object()
    scheduler = BlockingScheduler()
    runs = 0

    def _run():
        nonlocal runs
        runs += 1
        try:
            result = run_scheduled_sync(app)
            if result is None:
                click.echo(f"WARN  Run {runs}: skipped or failed, see log")
            else:
                click.echo(f"PASS Run {runs}: {result.updated_count} updated, {len(result.errors)} errors")
        finally:
            if max_runs is not None and runs >= max_runs:
                scheduler.shutdown(wait=False)

    scheduler.add_job(
        _run,
        'interval',
        seconds=interval,
        next_run_time=datetime.now(timezone.utc),
        max_instances=1,
        coalesce=True,
    )
    click.echo(f"START Inventory sync every {interval}s (Ctrl+C to stop)")
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        click.echo("DONE Sync loop stopped")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
