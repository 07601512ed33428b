# Overview: Flask CLI command groups for bootstrap, user management, balance checks and maintenance.

# backend/onestop/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init [--admin-password "..."]
#   Create missing tables and a default admin user (idempotent).
#
# Users:
# - python -m flask users create --username cashier --email c@shop.local --full-name "Cashier" --password "secret1" --role user
# - python -m flask users list
#
# Store credit:
# - python -m flask credit reconcile [--owner-id 1] [--fix]
#   Compare cached customer balances with the ledger; --fix rewrites drifted balances.
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --retention-days 30

import click
from flask.cli import with_appcontext

from .errors import ServiceError
from .extensions import db
from .models import User
from .models.auth import ROLES, ROLE_ADMIN
from .services import auth_service, credit_service, session_service


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Default admin username')
@click.option('--admin-email', default='admin@onestop.local', help='Default admin email')
@click.option('--admin-password', default='admin123', help='Default admin password')
@with_appcontext
def init_system(admin_username, admin_email, admin_password):
    """
    Create all tables that do not exist yet and a default admin account.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing OneStop POS...")

    db.create_all()
    click.echo("PASS Database tables ready")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
        return

    try:
        auth_service.create_user(
            username=admin_username,
            email=admin_email,
            password=admin_password,
            full_name="Administrator",
            role=ROLE_ADMIN,
        )
    except ServiceError as e:
        click.echo(f"FAIL Failed to create admin: {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created admin user: {admin_username} ({admin_email})")
    click.echo("SECURITY Change the default password immediately in production!")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Full name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(ROLES), default='user', show_default=True)
@with_appcontext
def create_user_cli(username, email, full_name, password, role):
    """Create a user."""
    try:
        user = auth_service.create_user(
            username=username,
            email=email,
            password=password,
            full_name=full_name,
            role=role,
        )
    except ServiceError as e:
        click.echo(f"FAIL Failed to create user: {e.message}")
        raise SystemExit(1)

    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}' (ID: {user.id})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = auth_service.list_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Role':<8} {'Active'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {user.role:<8} {active_str}")
    click.echo("=" * 80 + "\n")


@click.group('credit')
def credit_group():
    """Store credit consistency commands."""


@credit_group.command('reconcile')
@click.option('--owner-id', type=int, default=None, help='Only check this owner')
@click.option('--fix', is_flag=True, help='Rewrite drifted balances from the ledger')
@with_appcontext
def reconcile_cli(owner_id, fix):
    """Compare every customer's cached balance with its ledger sum."""
    report = credit_service.reconcile_balances(owner_id=owner_id, fix=fix)

    click.echo(f"Checked {report['checked']} customer(s)")
    if not report["drifted"]:
        click.echo("PASS All balances match the ledger")
        return

    for row in report["drifted"]:
        click.echo(
            f"DRIFT customer {row['customer_id']} ({row['name']}): "
            f"cached {row['cached_balance']} ledger {row['ledger_balance']} drift {row['drift']}"
        )
    if report["fixed"]:
        click.echo(f"PASS Rewrote {len(report['drifted'])} balance(s) from the ledger")
    else:
        click.echo("WARN  Run again with --fix to rewrite drifted balances")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--retention-days', default=30, show_default=True, type=int)
@with_appcontext
def cleanup_sessions_cli(retention_days):
    """Delete expired or revoked sessions older than the retention window."""
    deleted = session_service.cleanup_expired_sessions(retention_days=retention_days)
    click.echo(f"PASS Deleted {deleted} session(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(credit_group)
    app.cli.add_command(maintenance_group)
