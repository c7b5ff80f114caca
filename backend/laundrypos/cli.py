# Overview: Flask CLI command groups for bootstrap and operator maintenance.

# backend/laundrypos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use "flask db upgrade" for migration-managed databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create-admin --username admin --email admin@shop.local --password "Password123!"
#   Create an administrator account (prompts if options are omitted).
#
# Id sequences:
# - python -m flask sequences show
#   Print the last issued number per prefix.
# - python -m flask sequences set C 41
#   Move a counter forward (after importing legacy data). Never moves back.

import click
from flask.cli import with_appcontext

from .errors import POSError
from .extensions import db
from .services import auth_service, sequence_service


@click.group("system")
def system_group():
    """System bootstrap commands."""


@system_group.command("init-db")
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command("reset-db")
@click.option("--yes", is_flag=True, help="Skip confirmation")
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


@click.group("users")
def users_group():
    """Administrator accounts."""


@users_group.command("create-admin")
@click.option("--username", prompt=True, help="Username")
@click.option("--email", prompt=True, help="Email address")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Password")
@with_appcontext
def create_admin(username, email, password):
    try:
        user = auth_service.create_user(username, email, password)
    except POSError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS Created administrator {user.username} (ID: {user.id})")


@click.group("sequences")
def sequences_group():
    """Inspect and adjust id counters."""


@sequences_group.command("show")
@with_appcontext
def show_sequences():
    store = sequence_service.get_counter_store()
    counters = sequence_service.list_counters(store)
    click.echo(f"Store: {store.name}")
    if not counters:
        click.echo("No ids issued yet.")
        return
    for row in counters:
        click.echo(f"  {row['prefix']:<5} {row['counter_value']}")


@sequences_group.command("set")
@click.argument("prefix")
@click.argument("value", type=int)
@with_appcontext
def set_sequence(prefix, value):
    try:
        result = sequence_service.set_counter(prefix, value)
    except POSError as e:
        raise click.ClickException(e.message)
    click.echo(f"PASS {prefix} counter is now {result}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sequences_group)
