"""Typer CLI for Event Desk."""

from __future__ import annotations

import json
from pathlib import Path

from sqlalchemy.exc import OperationalError
import typer
import uvicorn

from .config import (
    load_settings,
    settings,
    settings_as_dict,
    update_config_file,
)
from .database import get_session
from .errors import NotFoundError
from .rsvp import recount_counters
from .seed import seed_fake_data
from .storage import init_db, upgrade_database

app = typer.Typer(help="Event Desk command-line interface")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Show help when no subcommand is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _readonly_exit(exc: OperationalError, what: str) -> None:
    message = str(getattr(exc, "orig", exc)).lower()
    if "readonly" in message or "read-only" in message:
        typer.secho(
            f"Unable to {what} because the database is read-only. "
            f"Ensure write access to {settings.database_path}.",
            err=True,
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)


@app.command("upgrade-db")
def upgrade_db(
    no_backup: bool = typer.Option(
        False,
        "--no-backup",
        help="Skip creating a .bak copy of the database before upgrading",
    ),
) -> None:
    """Upgrade the database schema if needed."""
    try:
        actions = upgrade_database(make_backup=not no_backup)
    except OperationalError as exc:
        _readonly_exit(exc, "upgrade")
        raise

    if not actions:
        typer.echo("Database already up to date.")
        return

    typer.echo("Database upgrade complete:")
    for action in actions:
        typer.echo(f"- {action}")


@app.command("runserver")
def runserver(
    host: str = typer.Option(settings.app_host, "--host", help="Host to bind"),
    port: int = typer.Option(settings.app_port, "--port", help="Port to bind"),
):
    """Start the Event Desk API."""
    init_db()
    config = uvicorn.Config(
        "eventdesk.api:app",
        host=host,
        port=port,
        reload=False,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    server = uvicorn.Server(config)
    typer.echo(f"Starting Event Desk on {host}:{port}")
    server.run()


@app.command("seed-data")
def seed_data(
    events: int = typer.Option(
        settings.seed_events, "--events", min=0, help="Number of events to create"
    ),
    max_rsvps: int = typer.Option(
        settings.seed_rsvps_per_event,
        "--max-rsvps",
        min=0,
        help="Maximum RSVPs to attach to each event",
    ),
):
    """Populate the database with fake events and responses for testing."""
    stats = seed_fake_data(event_count=events, max_rsvps_per_event=max_rsvps)
    typer.echo(
        f"Seed complete: {stats['events']} events, {stats['rsvps']} RSVPs created."
    )


@app.command("verify-counters")
def verify_counters(
    event_id: int | None = typer.Option(
        None, "--event-id", min=1, help="Only check this event"
    ),
    fix: bool = typer.Option(
        False, "--fix", help="Rewrite drifted counters from the response rows"
    ),
) -> None:
    """Compare each event's RSVP counters with its response rows."""
    init_db()
    try:
        with get_session() as session:
            drifts = recount_counters(session, event_id, fix=fix)
    except NotFoundError as exc:
        typer.secho(exc.message, err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if not drifts:
        typer.secho("All RSVP counters match their responses.", fg=typer.colors.GREEN)
        return

    for drift in drifts:
        typer.echo(
            f"Event {drift.event_id}: stored {json.dumps(drift.stored)} "
            f"actual {json.dumps(drift.actual)}"
        )
    if fix:
        typer.secho(f"Repaired {len(drifts)} event(s).", fg=typer.colors.GREEN)
    else:
        typer.secho(
            f"{len(drifts)} event(s) drifted; rerun with --fix to repair.",
            err=True,
            fg=typer.colors.YELLOW,
        )
        raise typer.Exit(code=1)


@app.command("config")
def configure(
    show: bool = typer.Option(
        False, "--show", help="Show the current effective configuration"
    ),
    host: str | None = typer.Option(None, "--host", help="Default host for runserver"),
    port: int | None = typer.Option(None, "--port", help="Default port for runserver"),
    busy_timeout: float | None = typer.Option(
        None,
        "--busy-timeout",
        min=0.0,
        help="Seconds SQLite waits on a locked database",
    ),
    seed_events: int | None = typer.Option(
        None, "--seed-events", min=0, help="Default seed-data events"
    ),
    seed_rsvps_per_event: int | None = typer.Option(
        None, "--seed-rsvps-per-event", min=0, help="Default seed-data RSVPs per event"
    ),
    config_path: Path | None = typer.Option(
        None, "--config-path", help="Path to eventdesk.toml (default: ./eventdesk.toml)"
    ),
):
    """View or update the persistent configuration file."""

    updates = {
        "app_host": host,
        "app_port": port,
        "sqlite_busy_timeout": busy_timeout,
        "seed_events": seed_events,
        "seed_rsvps_per_event": seed_rsvps_per_event,
    }
    clean_updates = {k: v for k, v in updates.items() if v is not None}

    target_path = config_path or settings.config_path
    if clean_updates:
        settings_ref = update_config_file(clean_updates, path=target_path)
        typer.echo(f"Updated configuration in {target_path}")
    else:
        settings_ref = load_settings(target_path)
    if show or not clean_updates:
        effective = settings_as_dict(settings_ref)
        effective["config_path"] = str(target_path)
        typer.echo(json.dumps(effective, indent=2))


if __name__ == "__main__":
    app()
