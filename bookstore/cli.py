"""
Maintenance commands, run as `flask --app bookstore <command>`.
"""
import click
from flask import Flask

from models.db_storage import classes
from models.user import User, UserRole
from utils.security import hash_password

from .extensions import get_storage


def register_commands(app: Flask) -> None:
    @app.cli.command("init-db")
    def init_db():
        """Create any missing tables."""
        get_storage().reload()
        click.echo("Database tables are ready.")

    @app.cli.command("create-admin")
    @click.option("--email", required=True)
    @click.option("--password", required=True, hide_input=True)
    @click.option("--name", default="Administrator", show_default=True)
    def create_admin(email, password, name):
        """Create an admin user, or promote an existing account and reset its password."""
        if len(password) < 6:
            raise click.BadParameter("must be at least 6 characters", param_hint="--password")
        storage = get_storage()
        session = storage.get_session()
        email = email.strip().lower()
        user = session.query(User).filter(User.email == email).first()
        if user:
            user.role = UserRole.ADMIN
            user.password_hash = hash_password(password)
            click.echo(f"Promoted {email} to admin and reset its password.")
        else:
            user = User(name=name, email=email, password_hash=hash_password(password), role=UserRole.ADMIN)
            click.echo(f"Created admin {email}.")
        storage.new(user)
        storage.save()

    @app.cli.command("db-stats")
    def db_stats():
        """Print the row count of every table."""
        storage = get_storage()
        for name, cls in sorted(classes.items()):
            click.echo(f"{cls.__tablename__:<15} {storage.count(cls):>8}")
