"""Flask CLI commands for scheduled maintenance."""

import click
from flask import current_app
from flask.cli import with_appcontext

from matchday.errors import NotFoundError

from .services import SweeperService


@click.command("sweep")
@with_appcontext
def sweep_command():
    """Expire or forfeit every challenge and match past its deadline."""
    report = SweeperService.sweep(
        max_attempts=current_app.config["TRANSACTION_MAX_ATTEMPTS"]
    )
    for key, value in report.items():
        click.echo(f"{key}: {value}")


@click.command("reconcile-tournament")
@click.argument("tournament_id")
@with_appcontext
def reconcile_tournament_command(tournament_id):
    """Re-apply bracket or standings updates for a tournament."""
    try:
        applied = SweeperService.reconcile_tournament(
            tournament_id, max_attempts=current_app.config["TRANSACTION_MAX_ATTEMPTS"]
        )
    except NotFoundError as e:
        raise click.ClickException(e.message) from e
    click.echo(f"{applied} effect(s) applied to {tournament_id}.")


def init_app(app):
    """Register the maintenance commands on `app`."""
    app.cli.add_command(sweep_command)
    app.cli.add_command(reconcile_tournament_command)
