"""Command-line interface for usersync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- users: Synchronize users from a CSV file
- filters: Reconcile data permissions of a project
"""

from __future__ import annotations

import click

from usersync.cli.config import configure_logging, load_params, server_config
from usersync.cli.filters import filters
from usersync.cli.users import users


@click.group()
@click.version_option(package_name="usersync")
def cli() -> None:
    """usersync - Synchronize users and data permissions."""


cli.add_command(users)
cli.add_command(filters)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "configure_logging",
    "load_params",
    "server_config",
]
