# Overview: Flask CLI command groups for bootstrap, catalog loading, scheduling and maintenance.

# backend/boxcount/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent: creates the single-row config tables (manual mode, unblocked).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Reference lists:
# - python -m flask catalog import-stores stores.csv
#   Upsert stores from a CSV with columns id,name.
# - python -m flask catalog import-assets assets.csv
#   Upsert assets from a CSV with columns id,name[,position].
# - python -m flask catalog list
#   Print stores (marking distribution centers) and assets.
#
# Schedule:
# - python -m flask schedule status
#   Show mode, blocked flag and window.
# - python -m flask schedule reconcile
#   Recompute blocked from the window. Safe to run from cron every minute.
#
# Integration:
# - python -m flask integration rotate-token
#   Print a fresh export token (valid 24h).
#
# Maintenance:
# - python -m flask maintenance cleanup-access-logs --retention-days 90
#   Delete integration access log rows older than the retention window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import ServiceError
from .services import (
    availability_service,
    catalog_service,
    integration_service,
    maintenance_service,
    webhook_service,
)
from .time_utils import to_utc_z


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create the single-row configuration tables if missing."""
    click.echo("START Initializing BoxCount...")

    config = availability_service.get_system_config()
    webhook_service.get_config()
    integration_service.get_config()
    db.session.commit()

    click.echo(f"PASS System config: mode={config.mode} blocked={config.blocked}")
    click.echo(f"PASS Stores loaded: {len(catalog_service.list_stores())}")
    click.echo(f"PASS Assets loaded: {len(catalog_service.list_assets())}")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('catalog')
def catalog_group():
    """Store and asset reference lists."""


@catalog_group.command('import-stores')
@click.argument('csv_file', type=click.File('r', encoding='utf-8-sig'))
@with_appcontext
def import_stores_cli(csv_file):
    """Upsert stores from a CSV file (id,name)."""
    try:
        created, updated = catalog_service.import_stores(csv_file.read())
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(f"PASS Stores: {created} created, {updated} updated")


@catalog_group.command('import-assets')
@click.argument('csv_file', type=click.File('r', encoding='utf-8-sig'))
@with_appcontext
def import_assets_cli(csv_file):
    """Upsert assets from a CSV file (id,name[,position])."""
    try:
        created, updated = catalog_service.import_assets(csv_file.read())
        db.session.commit()
    except ServiceError as e:
        db.session.rollback()
        raise click.ClickException(str(e))
    click.echo(f"PASS Assets: {created} created, {updated} updated")


@catalog_group.command('list')
@with_appcontext
def list_catalog():
    """List stores and assets."""
    stores = catalog_service.list_stores()
    click.echo(f"\nStores ({len(stores)}):")
    for store in stores:
        marker = " [CD]" if catalog_service.is_distribution_center(store) else ""
        click.echo(f"  {store.id:<10} {store.name}{marker}")

    assets = catalog_service.list_assets()
    click.echo(f"\nAssets ({len(assets)}):")
    for asset in assets:
        click.echo(f"  {asset.position:>3}  {asset.id:<10} {asset.name}")


@click.group('schedule')
def schedule_group():
    """Availability mode and counting window."""


@schedule_group.command('status')
@with_appcontext
def schedule_status():
    """Show the persisted availability state."""
    status = availability_service.get_status()
    db.session.commit()
    click.echo(f"Mode:    {status['mode']}")
    click.echo(f"Blocked: {status['blocked']}")
    window = status.get("window")
    if window:
        click.echo(
            f"Window:  {window['startDate']} {window['startTime']} -> "
            f"{window['endDate']} {window['endTime']}"
        )


@schedule_group.command('reconcile')
@with_appcontext
def schedule_reconcile():
    """Recompute the blocked flag from the window (cron-friendly)."""
    result = availability_service.reconcile()
    db.session.commit()
    if result.changed:
        click.echo(f"CHANGED System is now {'blocked' if result.blocked else 'open'}")
    else:
        click.echo(f"OK Status unchanged ({result.status})")


@click.group('integration')
def integration_group():
    """Integration export token management."""


@integration_group.command('rotate-token')
@with_appcontext
def rotate_token_cli():
    """Generate and print a new export token."""
    token, config = integration_service.generate_token()
    db.session.commit()
    click.echo(f"Token:   {token}")
    click.echo(f"Expires: {to_utc_z(config.expires_at)}")


@click.group('maintenance')
def maintenance_group():
    """Maintenance and retention commands."""


@maintenance_group.command('cleanup-access-logs')
@click.option('--retention-days', default=90, show_default=True, type=int, help='Retention window in days')
@with_appcontext
def cleanup_access_logs(retention_days):
    """Delete integration access log rows older than the retention window."""
    deleted = maintenance_service.cleanup_access_logs(retention_days=retention_days)
    db.session.commit()
    click.echo(f"PASS Deleted {deleted} access log rows older than {retention_days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(catalog_group)
    app.cli.add_command(schedule_group)
    app.cli.add_command(integration_group)
    app.cli.add_command(maintenance_group)
