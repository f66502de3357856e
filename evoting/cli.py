# evoting/cli.py

# Flask CLI commands: `flask --app evoting init-db` and `flask --app evoting create-user`

import click
from flask import current_app

from evoting import db
from evoting.authentication.auth_service import AuthService
from evoting.authentication.rbac import Role
from evoting.errors import VotingError


def register_commands(app):
    app.cli.add_command(init_db_command)
    app.cli.add_command(create_user_command)


@click.command('init-db')
def init_db_command():
    """Create the schema and seed the first superadmin."""
    db.create_all()
    click.echo("Database schema created.")

    username = current_app.config['DEFAULT_SUPERADMIN_USERNAME']
    password = current_app.config['DEFAULT_SUPERADMIN_PASSWORD']
    if not password:
        click.echo("DEFAULT_SUPERADMIN_PASSWORD not set, no superadmin seeded.")
        return
    try:
        user = AuthService().ensure_superadmin(username, password)
    except VotingError as e:
        raise click.ClickException(e.message)
    if user is None:
        click.echo("A superadmin already exists.")
    else:
        click.echo(f"Superadmin '{user.username}' created.")


@click.command('create-user')
@click.argument('username')
@click.option('--role', type=click.Choice([r.value for r in Role]), default=Role.ADMIN.value)
@click.password_option()
def create_user_command(username, role, password):
    """Create an admin or superadmin account."""
    try:
        user = AuthService().create_user(username, password, role)
    except VotingError as e:
        raise click.ClickException(e.message)
    click.echo(f"User '{user.username}' ({user.role}) created with id {user.id}.")
