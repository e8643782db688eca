"""Command line interface for inspecting recorded sessions."""

from __future__ import annotations

import asyncio
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .config import Settings
from .logging_config import configure_logging
from .store import SessionStore

app = typer.Typer(help="Inspect sessions recorded by the session recorder")
console = Console()


def _store(database_url: Optional[str]) -> SessionStore:
    settings = Settings()
    configure_logging(settings.log_level)
    return SessionStore.from_url(database_url or settings.database.url, echo=settings.database.echo)


def _fmt(value: object) -> str:
    return "-" if value is None else str(value)


@app.command("init-db")
def init_db(
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy URL of the session database"),
) -> None:
    """Create the session database schema."""

    _store(database_url)
    typer.echo("Database ready")


@app.command()
def sessions(
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy URL of the session database"),
) -> None:
    """List recorded sessions and their verdicts."""

    records = asyncio.run(_store(database_url).list_sessions())
    if not records:
        typer.echo("No sessions recorded")
        return

    table = Table(title="Sessions")
    for column in ("Session", "Name", "Platform", "Device", "Started", "Completed", "Status"):
        table.add_column(column)
    for record in records:
        table.add_row(
            record.session_id,
            _fmt(record.name),
            _fmt(record.platform_name),
            _fmt(record.device_name),
            record.start_time.isoformat(timespec="seconds"),
            "yes" if record.is_completed else "no",
            record.session_status.value if record.session_status else "-",
        )
    console.print(table)


@app.command()
def show(
    session_id: str = typer.Argument(..., help="Identifier of the session to show"),
    database_url: Optional[str] = typer.Option(None, "--database-url", help="SQLAlchemy URL of the session database"),
) -> None:
    """Show the command timeline of one session."""

    store = _store(database_url)
    record = asyncio.run(store.find_session(session_id))
    if record is None:
        typer.echo(f"Session {session_id} not found", err=True)
        raise typer.Exit(code=1)

    commands = asyncio.run(store.list_command_logs(session_id))
    status = record.session_status.value if record.session_status else "IN PROGRESS"
    typer.echo(f"Session {record.session_id} status: {status}")
    if record.video_path:
        typer.echo(f"Video: {record.video_path}")

    table = Table(title=f"Commands ({len(commands)})")
    for column in ("#", "Command", "Title", "Details", "Error", "Screenshot"):
        table.add_column(column)
    for index, command in enumerate(commands, start=1):
        table.add_row(
            str(index),
            command.command_name,
            command.title,
            _fmt(command.title_info),
            "yes" if command.is_error else "",
            _fmt(command.screen_shot),
        )
    console.print(table)


__all__ = ["app"]
