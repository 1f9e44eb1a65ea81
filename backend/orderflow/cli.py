# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/orderflow/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the factory (PowerShell: $env:FLASK_APP="orderflow:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System repair:
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Party inspection/bootstrap:
# - python -m flask parties create --name "North Depot" --email depot@orderflow.local --role depot
#   Register a party (password optional; prompts for nothing else).
# - python -m flask parties list [--role buyer]
#   List parties with role and active status.
#
# Capability inspection:
# - python -m flask capabilities list [--role carrier] [--category SHIPPING]
#   List capabilities, optionally only those a role holds or those in one category.
#
# Delivery receipts:
# - python -m flask receipts show DLV-12-1718900000000-X4K9QZ
#   Print a receipt with its line snapshot and confirmation state.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import DeliveryReceipt
from .permissions import (
    CAPABILITY_DEFINITIONS,
    DEFAULT_ROLE_CAPABILITIES,
    CapabilityCategory,
    Role,
    get_capabilities_by_category,
    get_capability_definition,
)
from .services.auth_service import create_party, list_parties
from .validation import DomainError


@click.group('system')
def system_group():
    """System repair commands."""


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

    click.echo("PASS Database reset complete. Run 'python -m flask parties create' to add parties.")


@click.group('parties')
def parties_group():
    """Party inspection and bootstrap commands."""


@parties_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address (unique)')
@click.option('--role', type=click.Choice([r.value for r in Role]), prompt=True, help='Role')
@click.option('--password', default=None, help='Password (optional; must meet strength rules)')
@click.option('--phone', default=None, help='Phone number')
@click.option('--address', default=None, help='Postal address')
@with_appcontext
def create_party_cli(name, email, role, password, phone, address):
    """
    Register a buyer, depot, carrier or admin.

    Password, when given, must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        party = create_party(name, email, role, password=password, phone=phone, address=address)
    except DomainError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created {party.role} '{party.name}' <{party.email}> (ID: {party.id})")


@parties_group.command('list')
@click.option('--role', type=click.Choice([r.value for r in Role]), default=None, help='Filter by role')
@click.option('--all', 'include_inactive', is_flag=True, help='Include inactive parties')
@with_appcontext
def list_parties_cli(role, include_inactive):
    """List parties with their role."""
    parties = list_parties(role=role, include_inactive=include_inactive)

    if not parties:
        click.echo("No parties found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Role':<9} {'Name':<25} {'Email':<30} {'Active'}")
    click.echo("="*80)

    for party in parties:
        active_str = "Yes" if party.is_active else "No"
        click.echo(f"{party.id:<5} {party.role:<9} {party.name:<25} {party.email:<30} {active_str}")

    click.echo("="*80 + "\n")


@click.group('capabilities')
def capabilities_group():
    """Capability inspection commands."""


@capabilities_group.command('list')
@click.option('--role', type=click.Choice([r.value for r in Role]), default=None, help='Filter by role')
@click.option('--category', default=None, help='Filter by category')
def list_capabilities_cli(role, category):
    """List capabilities, optionally filtered by role or category."""
    if category:
        category = category.upper()
        valid = [v for k, v in vars(CapabilityCategory).items() if k.isupper()]
        if category not in valid:
            raise click.ClickException(f"Unknown category '{category}' (expected one of: {', '.join(valid)})")
        definitions = get_capabilities_by_category(category)
    else:
        definitions = list(CAPABILITY_DEFINITIONS)

    title = "All capabilities"
    if role:
        held = DEFAULT_ROLE_CAPABILITIES[Role(role)]
        definitions = [d for d in definitions if d[0] in held]
        title = f"Capabilities for role: {role.upper()}"
    if category:
        title += f" in category: {category}"

    click.echo(f"\n{'='*80}")
    click.echo(title)
    click.echo(f"{'='*80}\n")

    current_category = None
    for code, *_ in sorted(definitions, key=lambda d: (d[3], d[0])):
        definition = get_capability_definition(code)
        if definition["category"] != current_category:
            if current_category:
                click.echo("")
            click.echo(f"CATEGORY {definition['category']}")
            click.echo("-"*80)
            current_category = definition["category"]
        click.echo(f"  {definition['code']:<28} {definition['name']}")

    click.echo(f"\n Total: {len(definitions)} capabilities\n")


@click.group('receipts')
def receipts_group():
    """Delivery receipt inspection."""


@receipts_group.command('show')
@click.argument('code')
@with_appcontext
def show_receipt(code):
    """Print a delivery receipt by code."""
    receipt = db.session.query(DeliveryReceipt).filter_by(code=code.strip()).first()
    if receipt is None:
        raise click.ClickException(f"Receipt {code} not found")

    data = receipt.to_dict()
    status = f"CONFIRMED at {data['confirmed_at']}" if receipt.confirmed else "PENDING"
    click.echo(f"Receipt {receipt.code} (order {receipt.order_id}) - {status}")
    click.echo(f"Buyer: {receipt.buyer_id}  Depot: {receipt.depot_id}  Total: {receipt.total_cents} cents")
    for line in data["lines"]:
        click.echo(f"  {line['quantity']:>5} x {line['name']:<30} @ {line['unit_price_cents']} cents")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(parties_group)
    app.cli.add_command(capabilities_group)
    app.cli.add_command(receipts_group)
