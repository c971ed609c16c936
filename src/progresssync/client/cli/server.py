"""Server administration commands for ProgressSync CLI.

Commands:
- server serve: Run the sync server
- server issue-token: Issue an owner token
"""

from __future__ import annotations

import os
import sys
from datetime import timedelta
from pathlib import Path

import click


def _resolve_db_path(db_path: str | None) -> Path:
    return Path(db_path or os.environ.get("PROGRESSSYNC_DB_PATH", "progresssync.db"))


@click.group()
def server() -> None:
    """Server management commands.

    These commands are for administrators running the ProgressSync server.
    """


@server.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", default=8000, show_default=True, type=int, help="Port to listen on.")
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: PROGRESSSYNC_DB_PATH or ./progresssync.db).",
)
def serve(host: str, port: int, db_path: str | None) -> None:
    """Run the sync server.

    Examples:

        # Serve on localhost:8000
        progresssync server serve

        # Serve on all interfaces with a custom database
        progresssync server serve --host 0.0.0.0 --db-path /var/lib/progresssync/progress.db
    """
    import uvicorn

    # The app factory reads its paths from the environment
    os.environ["PROGRESSSYNC_DB_PATH"] = str(_resolve_db_path(db_path))
    uvicorn.run(
        "progresssync.server.app:app_factory",
        factory=True,
        host=host,
        port=port,
    )


@server.command("issue-token")
@click.argument("owner_id")
@click.option(
    "--db-path",
    type=click.Path(),
    default=None,
    help="Path to database file (default: PROGRESSSYNC_DB_PATH or ./progresssync.db).",
)
@click.option(
    "--expires-days",
    type=int,
    default=None,
    help="Expire the token after N days (default: never).",
)
def issue_token(owner_id: str, db_path: str | None, expires_days: int | None) -> None:
    """Issue an authentication token for OWNER_ID.

    The raw token is printed once; only its hash is stored.
    """
    from progresssync.server.database import Database

    if expires_days is not None and expires_days < 1:
        click.echo("Error: --expires-days must be at least 1.", err=True)
        sys.exit(1)

    db = Database(_resolve_db_path(db_path))
    try:
        expires_in = timedelta(days=expires_days) if expires_days else None
        raw_token, _ = db.create_token(owner_id, expires_in=expires_in)
    finally:
        db.close()

    click.echo(raw_token)
