"""Typer CLI for RSVP Desk."""

from __future__ import annotations

import json

from sqlalchemy.exc import OperationalError
import typer
import uvicorn

from .auth import SessionHub
from .backends import build_backends
from .config import settings, settings_as_dict
from .errors import RepoError
from .scheduler import purge_expired_sessions
from .seed import seed_fake_data
from .storage import StorageError, create_organizer, upgrade_database

app = typer.Typer(help="RSVP Desk command-line interface")


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Show help when no subcommand is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _fail(message: str) -> None:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _readonly(exc: OperationalError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return "readonly" in message or "read-only" in message


@app.command("upgrade-db")
def upgrade_db(
    no_backup: bool = typer.Option(
        False,
        "--no-backup",
        help="Skip creating a .bak copy of a SQLite database before upgrading",
    ),
) -> None:
    """Upgrade the database schema if needed."""
    try:
        actions = upgrade_database(make_backup=not no_backup)
    except StorageError as exc:
        _fail(str(exc))
    except OperationalError as exc:
        if _readonly(exc):
            _fail(
                "Unable to upgrade because the database is read-only. "
                f"Ensure write access to {settings.repository_url}."
            )
        raise

    if not actions:
        typer.echo("Database already up to date.")
        return

    typer.echo("Database upgrade complete:")
    for action in actions:
        typer.echo(f"- {action}")


@app.command("create-organizer")
def create_organizer_command(
    email: str = typer.Argument(..., help="Organizer login email"),
    password: str = typer.Option(
        ...,
        "--password",
        prompt=True,
        hide_input=True,
        confirmation_prompt=True,
        help="Organizer password (prompted when omitted)",
    ),
) -> None:
    """Create an organizer account, or reset its password if it exists."""
    try:
        upgrade_database(make_backup=False)
        organizer = create_organizer(email, password)
    except (StorageError, ValueError) as exc:
        _fail(str(exc))
    except OperationalError as exc:
        if _readonly(exc):
            _fail("Unable to save the organizer because the database is read-only.")
        raise
    typer.echo(f"Organizer ready: {organizer.email}")


@app.command("purge-sessions")
def purge_sessions() -> None:
    """Delete expired organizer sessions now instead of waiting for the sweep."""
    _, auth_backend = build_backends(settings)
    removed = purge_expired_sessions(auth_backend, SessionHub())
    typer.echo(f"Removed {removed} expired session(s).")


@app.command("runserver")
def runserver(
    host: str = typer.Option(settings.app_host, "--host", help="Host to bind"),
    port: int = typer.Option(settings.app_port, "--port", help="Port to bind"),
):
    """Start FastAPI; the session sweep runs inside the app lifespan."""
    config = uvicorn.Config(
        "rsvpdesk.api:app",
        host=host,
        port=port,
        reload=False,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    server = uvicorn.Server(config)
    typer.echo(f"Starting RSVP Desk on {host}:{port} ({settings.backend} backend)")
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
    past_percent: int = typer.Option(
        30,
        "--past-percent",
        min=0,
        max=100,
        help="Percentage of events dated in the past (0-100)",
    ),
    seed: int | None = typer.Option(
        None, "--seed", help="Random seed for reproducible data"
    ),
) -> None:
    """Populate the repository with fake events and RSVPs for testing."""
    if settings.backend == "sql":
        upgrade_database(make_backup=False)
    repository, _ = build_backends(settings)
    try:
        stats = seed_fake_data(
            repository,
            event_count=events,
            max_rsvps_per_event=max_rsvps,
            past_percentage=past_percent,
            seed=seed,
        )
    except RepoError as exc:
        _fail(f"Seeding failed: {exc.message}")
    typer.echo(
        f"Seed complete: {stats['events']} events, {stats['rsvps']} RSVPs created."
    )


@app.command("show-config")
def show_config(
    as_json: bool = typer.Option(False, "--json", help="Print the settings as JSON"),
) -> None:
    """Show the current effective configuration."""
    values = settings_as_dict(settings)
    if as_json:
        typer.echo(json.dumps(values, indent=2))
        return
    width = max(len(key) for key in values)
    for key, value in values.items():
        typer.echo(f"{key.ljust(width)}  {value}")


if __name__ == "__main__":
    app()
