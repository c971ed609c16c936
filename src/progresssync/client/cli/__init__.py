"""Command-line interface for ProgressSync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- login: Save the server connection
- status: Show the locally cached document state
- show: Print the document
- sync: Synchronize once with the server
- watch: Keep synchronizing until interrupted
- toggle, add-item, remove-item, add-day, tag, link: Edit the document
- resolve: Resolve a sync conflict
- stats: Show completed items by difficulty
- server: Server administration commands
"""

from __future__ import annotations

import logging

import click

from progresssync.client.cli.config import (
    get_cache_path,
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
)
from progresssync.client.cli.document import (
    add_day_cmd,
    add_item_cmd,
    link,
    remove_item_cmd,
    login,
    resolve,
    show,
    stats,
    status,
    sync,
    tag,
    toggle,
    watch,
)
from progresssync.client.cli.server import server


@click.group()
@click.version_option(package_name="progresssync")
@click.option("--verbose", "-v", is_flag=True, help="Log sync activity to stderr.")
def cli(verbose: bool) -> None:
    """ProgressSync - keep a progress document in sync across devices."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


# Session commands
cli.add_command(login)
cli.add_command(status)

# Sync commands
cli.add_command(show)
cli.add_command(sync)
cli.add_command(watch)
cli.add_command(resolve)
cli.add_command(stats)

# Edit commands
cli.add_command(toggle)
cli.add_command(add_item_cmd)
cli.add_command(remove_item_cmd)
cli.add_command(add_day_cmd)
cli.add_command(tag)
cli.add_command(link)

# Server admin commands
cli.add_command(server)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_cache_path",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "save_config",
]
