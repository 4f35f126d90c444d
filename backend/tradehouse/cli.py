# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/tradehouse/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Items:
# - python -m flask items list
#   List items with shop and cold stock.
# - python -m flask items create --name "Mango" [--code 10001] [--shop-quantity 10 ...]
#   Create an item; the 5-digit code is generated when omitted.
#
# Parties:
# - python -m flask parties create broker --name "Ali"
#   Create a customer, vendor, broker or commissioner.
# - python -m flask parties recalculate broker 3
#   Rebuild a broker's or commissioner's totals from its invoices.
# - python -m flask parties recalculate-all
#   Rebuild totals for every broker and commissioner.
#
# Jobs:
# - python -m flask jobs list
#   Show registered jobs and their schedule.
# - python -m flask jobs run invoice-status-updates
#   Run a job now (e.g. after downtime across midnight).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Broker, Commissioner
from .services import aggregate_service, inventory_service
from .validation import ConflictError, NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (existing tables are left alone)."""
    db.create_all()
    click.echo("PASS Database tables created")


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
    click.echo("START Creating tables...")
    db.create_all()
    click.echo("PASS Database reset complete")


@click.group('items')
def items_group():
    """Item inspection and creation."""


@items_group.command('list')
@with_appcontext
def list_items_cli():
    """
    List all items with stock per bucket.

    Example:
        flask items list
    """
    items = inventory_service.list_items()
    if not items:
        click.echo("No items found.")
        return

    click.echo("\n" + "="*96)
    click.echo(f"{'Code':<7} {'Name':<25} {'Shop qty':>10} {'Shop net':>10} {'Cold qty':>10} {'Cold net':>10}")
    click.echo("="*96)
    for item in items:
        click.echo(
            f"{item.item_code:<7} {item.name[:25]:<25} "
            f"{item.shop_quantity:>10g} {item.shop_net_weight:>10g} "
            f"{item.cold_quantity:>10g} {item.cold_net_weight:>10g}"
        )
    click.echo("="*96)
    click.echo(f"Total: {len(items)} item(s)\n")


@items_group.command('create')
@click.option('--name', required=True, help='Unique item name')
@click.option('--code', 'item_code', type=int, default=None, help='5-digit item code (generated if omitted)')
@click.option('--shop-quantity', type=float, default=0)
@click.option('--shop-net-weight', type=float, default=0)
@click.option('--shop-gross-weight', type=float, default=0)
@click.option('--cold-quantity', type=float, default=0)
@click.option('--cold-net-weight', type=float, default=0)
@click.option('--cold-gross-weight', type=float, default=0)
@with_appcontext
def create_item_cli(name, item_code, **stock):
    """
    Create an item with optional opening stock.

    Example:
        flask items create --name "Mango" --shop-quantity 10 --shop-net-weight 100
    """
    try:
        item = inventory_service.create_item(name=name, item_code=item_code, **stock)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created item {item.name} (code {item.item_code}, ID {item.id})")


@click.group('parties')
def parties_group():
    """Customers, vendors, brokers and commissioners."""


@parties_group.command('create')
@click.argument('kind', type=click.Choice(sorted(aggregate_service.PARTY_MODELS)))
@click.option('--name', required=True)
@click.option('--phone', default=None)
@click.option('--city', default=None)
@with_appcontext
def create_party_cli(kind, name, phone, city):
    """Create a party identity."""
    try:
        party = aggregate_service.create_party(kind, name=name, phone=phone, city=city)
    except ValidationError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created {kind} {party.name} (ID: {party.id})")


@parties_group.command('recalculate')
@click.argument('kind', type=click.Choice(sorted(aggregate_service.AGGREGATE_PARTIES)))
@click.argument('party_id', type=int)
@with_appcontext
def recalculate_party_cli(kind, party_id):
    """Rebuild one broker's or commissioner's totals from its invoices."""
    try:
        party = aggregate_service.recalculate_party(kind, party_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))
    click.echo(
        f"PASS {kind} {party.name}: commission {party.total_commission}, "
        f"paid {party.total_paid}, remaining {party.total_remaining} ({party.status})"
    )


@parties_group.command('recalculate-all')
@with_appcontext
def recalculate_all_cli():
    """Rebuild totals for every broker and commissioner."""
    broker_ids = [pid for (pid,) in db.session.query(Broker.id).all()]
    commissioner_ids = [pid for (pid,) in db.session.query(Commissioner.id).all()]
    aggregate_service.refresh_party_totals(broker_ids=broker_ids, commissioner_ids=commissioner_ids)
    click.echo(f"PASS Recalculated {len(broker_ids)} broker(s) and {len(commissioner_ids)} commissioner(s)")


@click.group('jobs')
def jobs_group():
    """Scheduled job inspection and manual runs."""


@jobs_group.command('list')
@with_appcontext
def list_jobs_cli():
    from .jobs import list_jobs

    for job in list_jobs():
        click.echo(f"{job['name']:<28} {job['schedule']:<22} {job['description']}")


@jobs_group.command('run')
@click.argument('job_name')
@with_appcontext
def run_job_cli(job_name):
    """
    Run a job now.

    Example:
        flask jobs run invoice-status-updates
    """
    from .jobs import run_job

    try:
        result = run_job(job_name)
    except NotFoundError as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS {job_name}: {result}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(items_group)
    app.cli.add_command(parties_group)
    app.cli.add_command(jobs_group)
