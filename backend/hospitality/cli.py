# Overview: Flask CLI command groups for bootstrap, inspection, and sales repair.

# backend/hospitality/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to hospitality (PowerShell: $env:FLASK_APP="hospitality").
# - Use: python -m flask <group> <command> [options]
#
# System:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Establishment management (MULTI-TENANT):
# - python -m flask establishments list
#   List all establishments with their stored sales counters.
# - python -m flask establishments create --name "Chez Nous" --type restaurant --timezone Africa/Kigali
#   Create a new establishment (tenant).
#
# Sales inspection/repair:
# - python -m flask sales backfill --establishment-id 1 --by paid
#   Post every paid (or --by served) order that has no daily sales entry. Safe to re-run.
# - python -m flask sales audit --establishment-id 1 [--date 2026-10-19]
#   Read-only: compare order totals, daily sales and stored counters.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import ESTABLISHMENT_TYPES
from .services import establishment_service, diagnostics_service
from .services.diagnostics_service import BACKFILL_CRITERIA
from .validation import NotFoundError, ValidationError
from .time_utils import parse_iso_date


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

    click.echo("PASS Database reset complete.")


# =============================================================================
# ESTABLISHMENT MANAGEMENT COMMANDS
# =============================================================================

@click.group('establishments')
def establishments_group():
    """Establishment (tenant) management commands."""


@establishments_group.command('list')
@with_appcontext
def list_establishments_cli():
    """List all establishments."""
    establishments = establishment_service.list_establishments()

    if not establishments:
        click.echo("No establishments found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Type':<12} {'Active':<8} {'Orders':<8} {'Revenue'}")
    click.echo("="*80)

    for est in establishments:
        active_str = "Yes" if est.is_active else "No"
        click.echo(
            f"{est.id:<5} {est.name:<30} {est.establishment_type:<12} {active_str:<8} "
            f"{est.sales_total_orders:<8} {est.sales_total_revenue}"
        )

    click.echo("="*80 + "\n")


@establishments_group.command('create')
@click.option('--name', required=True, help='Establishment name')
@click.option('--type', 'establishment_type', type=click.Choice(ESTABLISHMENT_TYPES), default='restaurant')
@click.option('--timezone', default='UTC', help='IANA timezone for business days')
@with_appcontext
def create_establishment_cli(name, establishment_type, timezone):
    """Create a new establishment (tenant)."""
    try:
        est = establishment_service.create_establishment(name, establishment_type, timezone)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created establishment: {est.name} (ID: {est.id}, Type: {est.establishment_type})")


# =============================================================================
# SALES COMMANDS
# =============================================================================

@click.group('sales')
def sales_group():
    """Daily sales inspection and repair commands."""


@sales_group.command('backfill')
@click.option('--establishment-id', type=int, required=True, help='Establishment ID')
@click.option('--by', 'criterion', type=click.Choice(BACKFILL_CRITERIA), default='paid')
@with_appcontext
def backfill_sales_cli(establishment_id, criterion):
    """Post qualifying orders that are missing from daily sales."""
    try:
        result = diagnostics_service.run_backfill(establishment_id, criterion, actor="cli")
    except NotFoundError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(
        f"PASS Backfill ({criterion}) scanned {result.scanned} orders, "
        f"posted {result.newly_posted}, already posted {result.already_posted}, "
        f"skipped {result.not_qualified}, failed {result.failed}"
    )


@sales_group.command('audit')
@click.option('--establishment-id', type=int, required=True, help='Establishment ID')
@click.option('--date', 'day', default=None, help='Business day (YYYY-MM-DD), default today')
@with_appcontext
def audit_sales_cli(establishment_id, day):
    """Compare order-derived totals, daily sales and stored counters."""
    try:
        report = diagnostics_service.audit_sales(establishment_id, parse_iso_date(day))
    except ValueError:
        click.echo("FAIL --date must be YYYY-MM-DD")
        return
    except NotFoundError as e:
        click.echo(f"FAIL {e}")
        return

    orders = report["orders"]
    all_time = report["all_time"]
    click.echo(f"Sales audit for establishment {establishment_id} on {report['date']}")
    click.echo(f"  Orders today:      {orders['all']['count']:<6} {orders['all']['total']}")
    click.echo(f"  Served:            {orders['served']['count']:<6} {orders['served']['total']}")
    click.echo(f"  Paid:              {orders['paid']['count']:<6} {orders['paid']['total']}")
    click.echo(f"  Qualifying:        {orders['qualifying']['count']:<6} {orders['qualifying']['total']}")
    click.echo(f"  Daily sales:       {report['ledger']['count']:<6} {report['ledger']['total']}")
    click.echo(f"  Ledger (all time): {all_time['ledger_count']:<6} {all_time['ledger_total']}")
    click.echo(f"  Stored counters:   {all_time['stored_total_orders']:<6} {all_time['stored_total_revenue']}")

    if all_time["consistent"] and not all_time["unposted_qualifying_order_ids"]:
        click.echo("PASS Counters match the ledger and every qualifying order is posted")
    else:
        missing = all_time["unposted_qualifying_order_ids"]
        click.echo(
            f"WARN consistent={all_time['consistent']} unposted orders={missing} "
            f"(run 'flask sales backfill')"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(establishments_group)
    app.cli.add_command(sales_group)
