"""Document commands for ProgressSync CLI.

Commands:
- login: Save server URL, token and owner
- status: Show the locally cached document state
- show: Print the document
- sync: Pull from and push to the server once
- watch: Keep syncing until interrupted
- toggle / add-item / remove-item / add-day / tag / link: Local edits, pushed immediately
- resolve: Resolve a conflict explicitly
- stats: Show completed items by difficulty
"""

from __future__ import annotations

import asyncio
import contextlib
import sys
from collections.abc import AsyncIterator, Callable
from typing import TYPE_CHECKING

import click

from progresssync.client.cli.config import get_cache_path, load_config, save_config
from progresssync.core.types import Resolution, SyncState

if TYPE_CHECKING:
    from progresssync.client.agent import ClientSyncAgent
    from progresssync.client.api import ServerConflict
    from progresssync.client.edits import Edit
    from progresssync.core.document import ProgressDocument


def _require_login() -> dict[str, str]:
    config = load_config()
    if not config.get("server_url") or not config.get("auth_token") or not config.get("owner_id"):
        click.echo("Error: Not logged in. Run 'progresssync login' first.", err=True)
        sys.exit(1)
    return config


async def _prompt_resolution(conflict: ServerConflict) -> Resolution | None:
    """Ask the user how to resolve a conflict."""
    click.echo(
        f"\nConflict: the server has version {conflict.server_version} "
        f"({len(conflict.server_days)} days) and your changes cannot be merged automatically."
    )
    choice = await asyncio.to_thread(
        click.prompt,
        "Use server version, keep local version, or decide later?",
        type=click.Choice(["server", "local", "later"]),
        default="later",
    )
    if choice == "server":
        return Resolution.USE_SERVER
    if choice == "local":
        return Resolution.KEEP_LOCAL
    return None


@contextlib.asynccontextmanager
async def open_agent(
    interactive: bool = True,
    on_status: Callable[[SyncState], None] | None = None,
) -> AsyncIterator[ClientSyncAgent]:
    """Build an agent from the saved configuration and close it afterwards."""
    from progresssync.client.agent import ClientSyncAgent
    from progresssync.client.api import HTTPClient
    from progresssync.client.state import LocalCache
    from progresssync.core.config import ServerConfig

    config = _require_login()
    server_config = ServerConfig(server_url=config["server_url"], token=config["auth_token"])
    cache = LocalCache(get_cache_path())
    client = HTTPClient(server_config)
    agent = ClientSyncAgent(
        client,
        cache,
        owner_id=config["owner_id"],
        conflict_handler=_prompt_resolution if interactive else None,
        on_status=on_status,
    )
    try:
        yield agent
    finally:
        await agent.stop()
        await client.aclose()
        cache.close()


def _report(agent: ClientSyncAgent) -> None:
    document = agent.document
    click.echo(f"Status: {agent.status.value}")
    if document is not None:
        click.echo(f"Version: {document.version} (updated {document.last_updated.isoformat()})")
    if agent.pending_changes:
        click.echo("Local changes are waiting to be synced.")
    if agent.pending_conflict is not None:
        click.echo("A conflict is waiting: run 'progresssync resolve --use-server' or '--keep-local'.")


async def _load(agent: ClientSyncAgent) -> ProgressDocument:
    if not agent.bootstrap():
        await agent.pull()
    if agent.document is None:
        raise click.ClickException("No document available: the server could not be reached.")
    return agent.document


def _run_edit(edit_factory: Callable[[], Edit]) -> None:
    from progresssync.client.edits import EditError

    async def run() -> None:
        async with open_agent() as agent:
            await _load(agent)
            try:
                await agent.mutate(edit_factory())
            except EditError as e:
                raise click.ClickException(str(e)) from e
            await agent.push()
            _report(agent)

    asyncio.run(run())


@click.command()
@click.option("--server", "server_url", required=True, help="Server URL (e.g., http://localhost:8000).")
@click.option("--token", required=True, help="Owner token issued by the server.")
@click.option("--owner", "owner_id", required=True, help="Owner the token belongs to.")
def login(server_url: str, token: str, owner_id: str) -> None:
    """Save the server connection for this machine."""
    config = load_config()
    config["server_url"] = server_url.rstrip("/")
    config["auth_token"] = token
    config["owner_id"] = owner_id
    save_config(config)
    click.echo(f"Logged in to {config['server_url']} as {owner_id}")


@click.command()
def status() -> None:
    """Show the locally cached document state."""
    from progresssync.client.state import LocalCache

    config = _require_login()
    cache = LocalCache(get_cache_path())
    try:
        cached = cache.load(config["owner_id"])
    finally:
        cache.close()

    if cached is None:
        click.echo("No local copy yet. Run 'progresssync sync'.")
        return
    click.echo(f"Owner: {cached.owner_id}")
    click.echo(f"Version: {cached.version} (updated {cached.last_updated.isoformat()})")
    click.echo(f"Days: {len(cached.days)}")
    click.echo(f"Pending changes: {'yes' if cached.pending_changes else 'no'}")


@click.command()
def show() -> None:
    """Print the document with item ids."""
    async def run() -> None:
        async with open_agent(interactive=False) as agent:
            document = await _load(agent)
            for day in document.days:
                click.echo(f"Day {day.day_number} ({day.date})")
                for item in day.items:
                    mark = "x" if item.completed else " "
                    click.echo(f"  [{mark}] {item.id}  {item.text} ({item.difficulty.value})")
                if day.tags:
                    click.echo("  Tags: " + ", ".join(tag.text for tag in day.tags))
                for link in day.links:
                    click.echo(f"  Link: {link.display_text or link.url} <{link.url}>")

    asyncio.run(run())


@click.command()
@click.option("--no-input", is_flag=True, help="Do not prompt on conflicts.")
def sync(no_input: bool) -> None:
    """Pull from and push to the server once."""
    async def run() -> None:
        async with open_agent(interactive=not no_input) as agent:
            agent.bootstrap()
            await agent.pull()
            _report(agent)

    asyncio.run(run())


@click.command()
def watch() -> None:
    """Keep the document in sync until interrupted (Ctrl+C)."""

    def on_status(state: SyncState) -> None:
        click.echo(f"[{state.value}]")

    async def run() -> None:
        async with open_agent(on_status=on_status) as agent:
            await agent.start()
            click.echo("Watching for changes. Press Ctrl+C to stop.")
            await asyncio.Event().wait()

    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run())


@click.command()
@click.argument("day", type=int)
@click.argument("item_id")
@click.option("--done/--not-done", default=None, help="Set instead of flipping.")
def toggle(day: int, item_id: str, done: bool | None) -> None:
    """Flip the completion of ITEM_ID in DAY."""
    from progresssync.client.edits import toggle_item

    _run_edit(lambda: toggle_item(day, item_id, done))


@click.command("add-item")
@click.argument("day", type=int)
@click.argument("text")
@click.option("--link", default="", help="Problem URL.")
@click.option(
    "--difficulty",
    type=click.Choice(["Easy", "Medium", "Hard"]),
    default="Medium",
    show_default=True,
)
def add_item_cmd(day: int, text: str, link: str, difficulty: str) -> None:
    """Add an item to DAY."""
    from progresssync.client.edits import add_item
    from progresssync.core.document import Difficulty

    _run_edit(lambda: add_item(day, text, link=link, difficulty=Difficulty(difficulty)))


@click.command("remove-item")
@click.argument("day", type=int)
@click.argument("item_id")
def remove_item_cmd(day: int, item_id: str) -> None:
    """Remove ITEM_ID from DAY."""
    from progresssync.client.edits import remove_item

    _run_edit(lambda: remove_item(day, item_id))


@click.command("add-day")
@click.option("--date", default=None, help="ISO date (default: today).")
def add_day_cmd(date: str | None) -> None:
    """Append a new empty day."""
    from progresssync.client.edits import add_day

    _run_edit(lambda: add_day(date))


@click.command()
@click.argument("day", type=int)
@click.argument("text")
@click.option("--color", default="", help="Tag color.")
@click.option("--remove", is_flag=True, help="Remove the tag instead.")
def tag(day: int, text: str, color: str, remove: bool) -> None:
    """Add (or remove) a tag on DAY."""
    from progresssync.client.edits import add_tag, remove_tag

    if remove:
        _run_edit(lambda: remove_tag(day, text))
    else:
        _run_edit(lambda: add_tag(day, text, color))


@click.command()
@click.argument("day", type=int)
@click.argument("url")
@click.option("--text", "display_text", default="", help="Display text.")
@click.option("--remove", is_flag=True, help="Remove the link instead.")
def link(day: int, url: str, display_text: str, remove: bool) -> None:
    """Add (or remove) a link on DAY."""
    from progresssync.client.edits import add_link, remove_link

    if remove:
        _run_edit(lambda: remove_link(day, url))
    else:
        _run_edit(lambda: add_link(day, url, display_text))


@click.command()
@click.option("--use-server", "choice", flag_value=Resolution.USE_SERVER.value, help="Discard local changes.")
@click.option("--keep-local", "choice", flag_value=Resolution.KEEP_LOCAL.value, help="Overwrite the server.")
def resolve(choice: str | None) -> None:
    """Resolve a sync conflict."""
    if choice is None:
        raise click.UsageError("Pass --use-server or --keep-local.")

    async def run() -> None:
        async with open_agent(interactive=False) as agent:
            await _load(agent)
            await agent.push()
            if agent.pending_conflict is None:
                click.echo("No conflict to resolve.")
            else:
                await agent.resolve_conflict(Resolution(choice))
            _report(agent)

    asyncio.run(run())


@click.command()
def stats() -> None:
    """Show completed items by difficulty."""
    from progresssync.client.api import APIError, HTTPClient
    from progresssync.core.config import ServerConfig

    config = _require_login()

    async def run() -> dict[str, int]:
        async with HTTPClient(
            ServerConfig(server_url=config["server_url"], token=config["auth_token"])
        ) as client:
            return await client.get_stats()

    try:
        counts = asyncio.run(run())
    except APIError as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Solved: {counts['total']}")
    click.echo(f"  Easy:   {counts['easy']}")
    click.echo(f"  Medium: {counts['medium']}")
    click.echo(f"  Hard:   {counts['hard']}")
