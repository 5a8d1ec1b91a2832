# Overview: Flask CLI command groups for bootstrap, user setup and reward reconciliation.

# backend/cafe/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (use `flask db upgrade` in production).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create-admin --email admin@cafe.local --full-name "Admin" --password "secret123"
#   Create an ADMIN (or --role ROOT / STAFF) account (prompts if options are omitted).
#
# Orders / rewards reconciliation:
# - python -m flask orders pending-credits
#   List PAID orders whose reward points were never credited.
# - python -m flask orders credit-points 42
#   Credit the points order 42 still owes (no-op if already credited).
# - python -m flask rewards audit --customer-id 7
#   Compare an owner's balance with its replayed ledger.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models.auth import ROLE_ADMIN, ROLE_ROOT, ROLE_STAFF
from .services import orders_service, rewards_service
from .services.auth_service import create_user
from .services.identity_service import OwnerRef
from .validation import CafeError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables from the current models."""
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

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create-admin')
@click.option('--email', prompt=True, help='Login email')
@click.option('--full-name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password (6+ chars)')
@click.option('--phone', default=None, help='Phone number (optional)')
@click.option('--role', type=click.Choice([ROLE_ROOT, ROLE_ADMIN, ROLE_STAFF], case_sensitive=False),
              default=ROLE_ADMIN, show_default=True)
@with_appcontext
def create_admin(email, full_name, password, phone, role):
    """Create a staff account."""
    try:
        user = create_user(
            email=email,
            password=password,
            full_name=full_name,
            phone=phone,
            role=role.upper(),
        )
    except CafeError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{user.role}'")


@click.group('orders')
def orders_group():
    """Order maintenance commands."""


@orders_group.command('pending-credits')
@with_appcontext
def pending_credits():
    """List PAID orders that still owe reward points."""
    orders = orders_service.list_uncredited_orders()
    if not orders:
        click.echo("PASS No orders awaiting reward credit")
        return

    click.echo(f"{'ORDER':>8}  {'OWNER':<16}  {'POINTS':>6}  PAID AT")
    for order in orders:
        owner = OwnerRef.from_columns(order.user_id, order.customer_id)
        click.echo(f"{order.id:>8}  {owner.kind + ':' + str(owner.id):<16}  "
                   f"{order.reward_points_due:>6}  {order.paid_at}")
    click.echo(f"\nWARN {len(orders)} order(s) need `flask orders credit-points <id>`")


@orders_group.command('credit-points')
@click.argument('order_id', type=int)
@with_appcontext
def credit_points(order_id):
    """Credit the reward points a PAID order still owes."""
    try:
        credited = orders_service.reconcile_order_points(order_id)
    except CafeError as e:
        raise click.ClickException(str(e))

    if credited:
        click.echo(f"PASS Credited {credited} points for order {order_id}")
    else:
        click.echo(f"SKIP Order {order_id} owes no points (not PAID, anonymous, or already credited)")


@click.group('rewards')
def rewards_group():
    """Reward ledger inspection."""


@rewards_group.command('audit')
@click.option('--user-id', type=int, default=None)
@click.option('--customer-id', type=int, default=None)
@with_appcontext
def audit(user_id, customer_id):
    """Check that an owner's balance equals the sum of its ledger rows."""
    if (user_id is None) == (customer_id is None):
        raise click.UsageError("Pass exactly one of --user-id / --customer-id")

    owner = OwnerRef.from_columns(user_id, customer_id)
    try:
        report = rewards_service.audit_owner(owner)
    except CafeError as e:
        raise click.ClickException(str(e))

    status = "PASS" if report["consistent"] else "FAIL"
    click.echo(f"{status} {report['owner_kind']} {report['owner_id']}: "
               f"balance={report['balance']} ledger={report['ledger_sum']}")
    if not report["consistent"]:
        raise SystemExit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(rewards_group)
