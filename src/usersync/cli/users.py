"""Users command for the usersync CLI.

Commands:
- users: Synchronize users from a CSV file
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from usersync.cli.config import configure_logging, load_params, server_config
from usersync.cli.schemas import UsersParams
from usersync.client.api import APIError, PlatformClient
from usersync.core.reporting import SyncReporter
from usersync.core.types import ResultType
from usersync.sync import (
    ResultReport,
    SyncError,
    UserSyncDispatcher,
    load_users,
    read_csv_rows,
)

FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


@click.command()
@click.option("--params", "params_path", type=FILE, required=True, help="JSON parameter file.")
@click.option("--input", "input_path", type=FILE, required=True, help="CSV file with users.")
@click.option("--token", envvar="USERSYNC_TOKEN", help="API token (or USERSYNC_TOKEN).")
@click.option("--server", envvar="USERSYNC_SERVER", help="Server URL (or USERSYNC_SERVER).")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def users(
    params_path: Path,
    input_path: Path,
    token: str | None,
    server: str | None,
    verbose: bool,
) -> None:
    """Synchronize users from a CSV file.

    The sync mode and its targets are read from the parameter file.
    Exits with status 1 if any user failed to synchronize.
    """
    configure_logging(verbose)

    try:
        params = UsersParams.model_validate(load_params(params_path))
        config = server_config(server or params.server, token)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    settings = params.to_settings()
    reporter = SyncReporter()

    try:
        records = load_users(read_csv_rows(input_path), settings, reporter)
        with PlatformClient(config) as platform:
            events = UserSyncDispatcher(platform, settings, reporter).run(records)
        report = ResultReport.from_events(events)
        report.log_summary(reporter)
        report.raise_for_failures(reporter)
    except (SyncError, APIError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(
        f"Synchronized {len(records)} users: "
        f"{report.count(ResultType.CREATED)} created, "
        f"{report.count(ResultType.UPDATED)} updated, "
        f"{report.count(ResultType.DELETED)} deleted"
    )
