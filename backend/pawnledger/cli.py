# Overview: Flask CLI command groups for bootstrap, user management and maintenance.

# backend/pawnledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables (if missing) and seed reference types.
# - python -m flask system seed-types
#   Seed person, document and image types only.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email owner@example.com --password "Password123!" [--username owner] [--admin]
# - python -m flask users make-admin owner@example.com [--revoke]
#
# Book types:
# - python -m flask books add-type --name police_book --display-name "Police Book"
# - python -m flask books add-field --type police_book --name serial --label "Serial number" [--field-type text] [--required]
#
# Maintenance:
# - python -m flask maintenance cleanup-sessions --days 30
#   Delete expired / revoked session tokens older than the window.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User, Book
from .services.auth_service import create_user, set_admin, normalize_email, PasswordValidationError
from .services import book_service, reference_service, session_service
from .validation import ValidationError, ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """Create tables and seed reference types. Safe to run repeatedly."""
    click.echo("START Initializing pawnledger...")
    db.create_all()
    click.echo("PASS Tables ready")

    created = reference_service.seed_reference_types()
    for table, count in created.items():
        click.echo(f"PASS {table}: {count} created")
    click.echo("DONE")


@system_group.command('seed-types')
@with_appcontext
def seed_types():
    """Seed person, document and image types."""
    created = reference_service.seed_reference_types()
    for table, count in created.items():
        click.echo(f"PASS {table}: {count} created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Confirm dropping every table')
@with_appcontext
def reset_db(yes):
    """DEV/TEST only: drop and recreate all tables."""
    if not yes:
        click.echo("FAIL Refusing to reset without --yes")
        return
    db.drop_all()
    db.create_all()
    reference_service.seed_reference_types()
    click.echo("PASS Database reset and reference types seeded")


@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their book counts."""
    users = db.session.query(User).order_by(User.id.asc()).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<35} {'Active':<8} {'Admin':<7} {'Books'}")
    click.echo("="*90)
    for user in users:
        book_count = db.session.query(Book).filter_by(user_id=user.id).count()
        active_str = "Yes" if user.is_active else "No"
        admin_str = "Yes" if user.is_admin else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<35} {active_str:<8} {admin_str:<7} {book_count}")
    click.echo("="*90 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--username', default=None)
@click.option('--admin', 'is_admin', is_flag=True, help='Grant admin rights')
@with_appcontext
def create_user_cli(email, password, username, is_admin):
    """Create a user."""
    try:
        user = create_user(email=email, password=password, username=username, is_admin=is_admin)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        return
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user: {user.username} ({user.email}) ID={user.id}{' [admin]' if user.is_admin else ''}")


@users_group.command('make-admin')
@click.argument('email')
@click.option('--revoke', is_flag=True, help='Remove admin rights instead')
@with_appcontext
def make_admin_cli(email, revoke):
    """Grant (or revoke) admin rights."""
    try:
        user = db.session.query(User).filter_by(email=normalize_email(email)).first()
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return
    if not user:
        click.echo(f"FAIL User '{email}' not found")
        return
    set_admin(user.id, is_admin=not revoke)
    click.echo(f"PASS {user.email} admin={'No' if revoke else 'Yes'}")


@click.group('books')
def books_group():
    """Book type and field definition commands."""


@books_group.command('add-type')
@click.option('--name', required=True)
@click.option('--display-name', required=True)
@click.option('--description', default=None)
@with_appcontext
def add_book_type_cli(name, display_name, description):
    try:
        book_type = book_service.create_book_type(name=name, display_name=display_name, description=description)
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created book type: {book_type.name} (ID: {book_type.id})")


@books_group.command('add-field')
@click.option('--type', 'book_type_name', required=True, help='Book type name')
@click.option('--name', required=True)
@click.option('--label', required=True)
@click.option('--field-type', default='text', type=click.Choice(['text', 'number', 'date', 'select']), show_default=True)
@click.option('--required', 'is_required', is_flag=True)
@click.option('--order', 'display_order', type=int, default=None)
@with_appcontext
def add_field_cli(book_type_name, name, label, field_type, is_required, display_order):
    try:
        field = book_service.add_field_definition(
            book_type_name=book_type_name,
            name=name,
            label=label,
            field_type=field_type,
            is_required=is_required,
            display_order=display_order,
        )
    except (ValidationError, ConflictError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Added field '{field.name}' to {book_type_name} (order {field.display_order})")


@click.group('maintenance')
def maintenance_group():
    """Maintenance commands."""


@maintenance_group.command('cleanup-sessions')
@click.option('--days', type=int, default=30, show_default=True)
@with_appcontext
def cleanup_sessions_cli(days):
    """Delete expired or revoked session tokens older than --days."""
    deleted = session_service.cleanup_expired_sessions(days=days)
    click.echo(f"Deleted {deleted} session tokens older than {days} days.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(books_group)
    app.cli.add_command(maintenance_group)
