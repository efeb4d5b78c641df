"""Filters command for the usersync CLI.

Commands:
- filters: Reconcile data permissions of a project
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from usersync.cli.config import configure_logging, load_params, server_config
from usersync.cli.schemas import FiltersParams
from usersync.client.api import APIError, PlatformClient
from usersync.core.reporting import SyncReporter
from usersync.filters import FilterReconciler, FilterSyncError, definitions_from_rows
from usersync.sync import LoadError, read_csv_rows

FILE = click.Path(exists=True, dir_okay=False, path_type=Path)


@click.command()
@click.option("--params", "params_path", type=FILE, required=True, help="JSON parameter file.")
@click.option("--input", "input_path", type=FILE, required=True, help="CSV file with filter values.")
@click.option("--users", "users_path", type=FILE, help="CSV of users managed by this run.")
@click.option("--dry-run", is_flag=True, help="Report changes without applying them.")
@click.option("--token", envvar="USERSYNC_TOKEN", help="API token (or USERSYNC_TOKEN).")
@click.option("--server", envvar="USERSYNC_SERVER", help="Server URL (or USERSYNC_SERVER).")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def filters(
    params_path: Path,
    input_path: Path,
    users_path: Path | None,
    dry_run: bool,
    token: str | None,
    server: str | None,
    verbose: bool,
) -> None:
    """Reconcile data permissions (MUFs) of a project.

    Filters of users missing from the input are deleted; with --users only
    filters of the listed users are touched.
    """
    configure_logging(verbose)

    try:
        params = FiltersParams.model_validate(load_params(params_path))
        config = server_config(server or params.server, token)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    reporter = SyncReporter()

    try:
        definitions = definitions_from_rows(
            read_csv_rows(input_path), params.login_column, params.label_columns()
        )
        managed = list(read_csv_rows(users_path)) if users_path else None
        with PlatformClient(config) as client:
            project = client.projects(params.project_id)
            if project is None:
                click.echo(f"Error: Project {params.project_id} was not found", err=True)
                sys.exit(1)
            domain = client.domain(params.domain) if params.domain else None
            reconciler = FilterReconciler(client, project, domain, reporter)
            result = reconciler.execute(definitions, users_brick_input=managed, dry_run=dry_run)
    except (FilterSyncError, LoadError, APIError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    for event in result.issues:
        reporter.warning(f"{event.status}: {event.subject}: {event.detail}")

    prefix = "Would create" if dry_run else "Created"
    click.echo(f"{prefix} {len(result.created)} filters, deleted {len(result.deleted)} filters")
    if not result.success:
        sys.exit(1)
