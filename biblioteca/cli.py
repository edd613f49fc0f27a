import click
from flask import Flask
from flask.cli import AppGroup

from biblioteca.extensions import db
from biblioteca.models.admin_user import AdminUser

admins_cli = AppGroup("admins", help="Manage the administrator allow-list.")


@admins_cli.command("add")
@click.argument("user_id")
@click.option("--email", default=None, help="Contact email for the administrator.")
def add_admin(user_id, email):
    """Add USER_ID to the allow-list."""
    if db.session.get(AdminUser, user_id):
        click.echo(f"{user_id} is already an administrator. Skipping.")
        return
    db.session.add(AdminUser(user_id=user_id, email=email))
    db.session.commit()
    click.echo(f"Administrator {user_id} added.")


@admins_cli.command("remove")
@click.argument("user_id")
def remove_admin(user_id):
    """Remove USER_ID from the allow-list."""
    admin = db.session.get(AdminUser, user_id)
    if admin is None:
        raise click.ClickException(f"{user_id} is not an administrator")
    db.session.delete(admin)
    db.session.commit()
    click.echo(f"Administrator {user_id} removed.")


@admins_cli.command("list")
def list_admins():
    for admin in AdminUser.query.order_by(AdminUser.created_at).all():
        click.echo(f"{admin.user_id}\t{admin.email or '-'}")


@click.command("init-db")
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("Database tables created.")


def register_cli(app: Flask) -> None:
    app.cli.add_command(admins_cli)
    app.cli.add_command(init_db)
