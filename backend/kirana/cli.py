# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/kirana/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--email admin@kirana.local]
#   Idempotent bootstrap: creates tables and the first admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
#   List all users with roles and active status.
# - python -m flask users create --email c@shop.in --full-name "Asha" --password "Password123!" --role cashier --store-id 1
#   Create a user (prompts if options are omitted).
# - python -m flask users confirm --email c@shop.in
#   Mark a self-registered user's email as confirmed.
# - python -m flask users deactivate --email c@shop.in
#   Deactivate a user and revoke all of their sessions.
# - python -m flask users grant-role --email c@shop.in --role cashier --store-id 1
#   Grant a role to a self-registered user (cashiers need a store).
# - python -m flask users revoke-role --email c@shop.in --role cashier
#   Remove a role from a user.
#
# Store inspection:
# - python -m flask stores list
#   List all stores with owner and active status.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Store, User, APP_ROLES, ROLE_ADMIN, ROLE_CASHIER
from .services.auth_service import (
    create_user,
    confirm_email,
    get_user_by_email,
    list_users as list_all_users,
    PasswordValidationError,
    IdentityError,
)
from .services.permission_service import assign_role, get_user_roles, revoke_role
from .services.session_service import revoke_user_sessions


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--email', default='admin@kirana.local', help='Admin email')
@click.option('--full-name', default='Administrator', help='Admin display name')
@click.option('--password', default='Password123!', help='Admin password')
@with_appcontext
def init_system(email, full_name, password):
    """
    Initialize the system: tables and the first admin user.

    Default admin: admin@kirana.local / "Password123!"

    SECURITY: Change the password immediately in production!
    """
    click.echo("START Initializing Kirana POS...")

    db.create_all()
    click.echo("PASS Tables ready")

    admin = get_user_by_email(email)
    if admin is None:
        try:
            admin = create_user(
                email=email,
                password=password,
                full_name=full_name,
                email_confirmed=True,
            )
        except (PasswordValidationError, IdentityError) as e:
            click.echo(f"FAIL Could not create admin: {str(e)}")
            return
        click.echo(f"PASS Created admin user: {admin.email}")
    else:
        click.echo(f"PASS Using existing user: {admin.email}")

    assign_role(admin.id, ROLE_ADMIN)
    click.echo("PASS admin role assigned")
    click.echo("\nWARN Change the default password before going live.")


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


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--full-name', prompt=True, help='Display name')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(APP_ROLES), prompt=True, help='Role')
@click.option('--store-id', type=int, default=None, help='Store a cashier works at')
@with_appcontext
def create_user_cli(email, full_name, password, role, store_id):
    """
    Create a confirmed user with a role.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    if store_id is not None and db.session.get(Store, store_id) is None:
        click.echo(f"FAIL Store ID {store_id} not found")
        return
    if role == ROLE_CASHIER and store_id is None:
        click.echo("FAIL Cashiers need --store-id")
        return

    try:
        user = create_user(
            email=email,
            password=password,
            full_name=full_name,
            store_id=store_id,
            email_confirmed=True,
        )
        assign_role(user.id, role)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {str(e)}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except IdentityError as e:
        click.echo(f"FAIL Failed to create user: {str(e)}")
        return

    click.echo(f"PASS Created user: {user.email} with role '{role}'")
    if store_id is not None:
        click.echo(f"     Store ID: {store_id}")
    click.echo("SECURITY Password securely hashed with bcrypt")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = list_all_users()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Email':<32} {'Name':<24} {'Store':<6} {'Active':<8} {'Roles'}")
    click.echo("="*100)

    for user in users:
        roles_str = ", ".join(sorted(get_user_roles(user.id))) or "none"
        active_str = "Yes" if user.is_active else "No"
        store_str = str(user.store_id) if user.store_id is not None else "-"
        click.echo(f"{user.id:<5} {user.email:<32} {user.full_name:<24} {store_str:<6} {active_str:<8} {roles_str}")

    click.echo("="*100 + "\n")


@users_group.command('confirm')
@click.option('--email', prompt=True, help='Email address')
@with_appcontext
def confirm_user(email):
    """Mark a user's email as confirmed."""
    user = get_user_by_email(email)
    if not user:
        click.echo(f"FAIL User {email} not found")
        return
    confirm_email(user.id)
    click.echo(f"PASS Confirmed {user.email}")


@users_group.command('deactivate')
@click.option('--email', prompt=True, help='Email address')
@with_appcontext
def deactivate_user(email):
    """Deactivate a user and revoke their sessions."""
    user = get_user_by_email(email)
    if not user:
        click.echo(f"FAIL User {email} not found")
        return
    user.is_active = False
    db.session.commit()
    revoked = revoke_user_sessions(user.id, reason="User deactivated")
    click.echo(f"PASS Deactivated {user.email}; revoked {revoked} session(s)")


@users_group.command('grant-role')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(APP_ROLES), prompt=True, help='Role')
@click.option('--store-id', type=int, default=None, help='Store a cashier works at')
@with_appcontext
def grant_role(email, role, store_id):
    """Grant a role to an existing user."""
    user = get_user_by_email(email)
    if not user:
        click.echo(f"FAIL User {email} not found")
        return

    if store_id is not None:
        if db.session.get(Store, store_id) is None:
            click.echo(f"FAIL Store ID {store_id} not found")
            return
        user.store_id = store_id
        db.session.commit()

    if role == ROLE_CASHIER and user.store_id is None:
        click.echo("FAIL Cashiers need --store-id")
        return

    assign_role(user.id, role)
    click.echo(f"PASS Granted '{role}' to {user.email}")


@users_group.command('revoke-role')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice(APP_ROLES), prompt=True, help='Role')
@with_appcontext
def revoke_role_cli(email, role):
    """Remove a role from a user."""
    user = get_user_by_email(email)
    if not user:
        click.echo(f"FAIL User {email} not found")
        return
    if revoke_role(user.id, role):
        click.echo(f"PASS Revoked '{role}' from {user.email}")
    else:
        click.echo(f"WARN {user.email} did not have '{role}'")


@click.group('stores')
def stores_group():
    """Store inspection commands."""


@stores_group.command('list')
@with_appcontext
def list_stores():
    """List all stores."""
    stores = db.session.query(Store).order_by(Store.id.asc()).all()

    if not stores:
        click.echo("No stores found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<5} {'Name':<30} {'Owner':<32} {'GSTIN':<18} {'Active'}")
    click.echo("="*100)

    for store in stores:
        owner = db.session.get(User, store.owner_id)
        owner_str = owner.email if owner else f"#{store.owner_id}"
        active_str = "Yes" if store.is_active else "No"
        click.echo(f"{store.id:<5} {store.name:<30} {owner_str:<32} {store.gst_number or '-':<18} {active_str}")

    click.echo("="*100 + "\n")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(stores_group)
