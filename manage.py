"""Management script for database migrations and payment maintenance"""

import json
import os

import click
from dotenv import load_dotenv
from flask.cli import FlaskGroup
from flask_migrate import upgrade

load_dotenv()

from biblioteca import create_app  # noqa: E402


def _create_app():
    return create_app(os.getenv("FLASK_CONFIG"))


cli = FlaskGroup(create_app=_create_app)


@cli.command("migrate-db")
def migrate_db():
    """Apply any pending database migrations"""
    click.echo("Applying database migrations...")
    upgrade()
    click.echo("Database migrations applied successfully.")


@cli.command("reconcile")
@click.option("--batch-size", type=int, default=None, help="Rows to check in this sweep.")
def reconcile(batch_size):
    """Run one reconciliation sweep over pending charges"""
    from biblioteca.services.reconciliation_service import reconcile_pending_payments

    report = reconcile_pending_payments(batch_size)
    click.echo(json.dumps({k: v for k, v in report.items() if k != "details"}, indent=2))


if __name__ == "__main__":
    cli()
