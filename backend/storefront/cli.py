# backend/storefront/cli.py
# Commands (run from the backend directory with FLASK_APP=wsgi.py):
#
# Database:
# - flask system init-db
#   Create any missing tables (use `flask db upgrade` for migrated deployments).
# - flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - flask system cleanup-sessions
#   Delete sessions that ended more than 30 days ago.
#
# Accounts:
# - flask users create --email admin@shop.local --password "Password123!" --role admin
# - flask users list [--role manager]
# - flask users policy manager
#   Show what a role may do.
#
# Inventory:
# - flask inventory alerts [--severity critical]
#   Print products at or below their low-stock threshold.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import ROLES
from .policy import allowed_actions
from .services.auth_service import AuthService
from .services.inventory_service import InventoryService
from .services.session_service import SessionService
from .validation import ConflictError, ValidationError


@click.group('system')
def system_group():
    """Database bootstrap and maintenance."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    db.create_all()
    click.echo("PASS Tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping every table')
@with_appcontext
def reset_db(yes):
    if not yes:
        raise click.UsageError("Refusing to drop data without --yes")
    db.drop_all()
    db.create_all()
    click.echo("PASS Database reset")


@system_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    deleted = SessionService(db.session).cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} old sessions")


@click.group('users')
def users_group():
    """Account management."""


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--name', default=None)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', type=click.Choice(ROLES), default='customer', show_default=True)
@with_appcontext
def create_user_command(email, name, password, role):
    try:
        user = AuthService(db.session).create_user(email=email, password=password, name=name, role=role)
    except (ConflictError, ValidationError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created {user.role} {user.email} (ID: {user.id})")


@users_group.command('list')
@click.option('--role', type=click.Choice(ROLES), default=None)
@with_appcontext
def list_users(role):
    q = db.session.query(User).order_by(User.id.asc())
    if role:
        q = q.filter(User.role == role)
    users = q.all()
    if not users:
        click.echo("No users found")
        return
    for user in users:
        status = "active" if user.is_active else "inactive"
        click.echo(f"{user.id:>5}  {user.email:<40} {user.role:<12} {status}")


@users_group.command('policy')
@click.argument('role', type=click.Choice(ROLES))
def show_policy(role):
    for resource, actions in sorted(allowed_actions(role).items()):
        click.echo(f"{resource:<12} {', '.join(actions)}")


@click.group('inventory')
def inventory_group():
    """Stock inspection."""


@inventory_group.command('alerts')
@click.option('--severity', type=click.Choice(['critical', 'warning', 'all']), default='all')
@with_appcontext
def inventory_alerts(severity):
    service = InventoryService(db.session, default_threshold=current_app.config["LOW_STOCK_THRESHOLD"])
    data = service.alerts(severity=severity)
    counts = data["counts"]
    click.echo(f"{counts['critical']} critical, {counts['warning']} warning")
    for alert in data["alerts"]:
        click.echo(
            f"{alert['severity'].upper():<9} {alert['product_sku']:<20} "
            f"{alert['current_stock']:>5} / {alert['threshold']:<5} {alert['product_name']}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
