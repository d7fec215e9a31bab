# Overview: Flask CLI command groups for bootstrap and user management.

# backend/shipdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: tables, roles with default permissions, admin user, courier partners.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users create --email ops@shipdesk.local --name "Ops" --password "Password123" --role warehouse
#   Create a user (prompts if options are omitted).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import CourierPartner, Role, User
from .permissions import DEFAULT_ROLE_PERMISSIONS
from .services.auth_service import create_user, create_default_roles, PasswordValidationError


DEFAULT_ADMIN_EMAIL = "admin@shipdesk.local"
DEFAULT_ADMIN_PASSWORD = "Password123"

DEFAULT_COURIER_PARTNERS = [
    # (name, code, type)
    ("Delhivery", "DELHIVERY", "third_party"),
    ("Blue Dart", "BLUEDART", "third_party"),
    ("In-house Riders", "INHOUSE", "in_house"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize Shipdesk: schema, roles, an admin user and courier partners.

    Safe to run repeatedly; existing rows are left alone.

    SECURITY: Change the admin password immediately in production!
    """
    click.echo("START Initializing Shipdesk...")

    db.create_all()

    click.echo("\nLIST Creating roles...")
    grants = create_default_roles()
    roles = db.session.query(Role).order_by(Role.id).all()
    click.echo(f"PASS Roles: {', '.join(r.name for r in roles)} ({grants} new permission grants)")

    click.echo("\nUSERS Creating admin user...")
    if db.session.query(User).filter_by(email=DEFAULT_ADMIN_EMAIL).first():
        click.echo(f"WARN  User '{DEFAULT_ADMIN_EMAIL}' already exists, skipping...")
    else:
        create_user(
            email=DEFAULT_ADMIN_EMAIL,
            name="Administrator",
            password=DEFAULT_ADMIN_PASSWORD,
            role_name="admin",
            is_super_admin=True,
        )
        click.echo(f"PASS Created user: {DEFAULT_ADMIN_EMAIL} with role 'admin'")

    click.echo("\nCOURIERS Creating courier partners...")
    for name, code, courier_type in DEFAULT_COURIER_PARTNERS:
        if db.session.query(CourierPartner).filter_by(code=code).first():
            continue
        db.session.add(CourierPartner(name=name, code=code, type=courier_type))
        click.echo(f"PASS Created courier partner: {name} ({courier_type})")
    db.session.commit()

    click.echo("\n" + "=" * 60)
    click.echo("DONE Shipdesk Initialized Successfully!")
    click.echo("=" * 60)
    click.echo("\nDefault Credentials (CHANGE IN PRODUCTION!):")
    click.echo(f"   {DEFAULT_ADMIN_EMAIL} / {DEFAULT_ADMIN_PASSWORD}")
    click.echo("")


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
    click.echo("BUILD Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete. Run 'python -m flask system init' to bootstrap.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their role and active status."""
    users = db.session.query(User).order_by(User.id).all()
    if not users:
        click.echo("No users found.")
        return

    for user in users:
        role = user.role.name if user.role else "-"
        status = "active" if user.is_active else "inactive"
        admin = " (super admin)" if user.is_super_admin else ""
        click.echo(f"{user.id:>4}  {user.email:<32} {role:<10} {status}{admin}")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(DEFAULT_ROLE_PERMISSIONS)), prompt=True, help='Role')
@click.option('--super-admin', is_flag=True, help='Bypass all permission checks')
@with_appcontext
def create_user_cli(email, name, password, role, super_admin):
    """
    Create a new user.

    Password must be at least 8 characters with a letter and a digit.
    """
    try:
        user = create_user(
            email=email,
            name=name,
            password=password,
            role_name=role,
            is_super_admin=super_admin,
        )
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except ValueError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created user: {user.email} (ID: {user.id}) with role '{role}'")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
