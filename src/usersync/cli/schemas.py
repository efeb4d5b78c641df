"""Pydantic schemas for command parameter files."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict

from usersync.core.config import SyncSettings
from usersync.filters.types import FilterClause

# === User sync ===


class UsersParams(BaseModel):
    """Parameters of the ``users`` command.

    Unknown keys are kept: ``<field>_column`` and
    ``multiple_projects_column`` configure the column mapping.
    """

    model_config = ConfigDict(extra="allow")

    server: str | None = None
    sync_mode: str | None = None
    organization: str | None = None
    domain: str | None = None
    gdc_project_id: str | None = None
    project_id: str | None = None
    data_product: str | None = None
    segments: list[str] | None = None
    whitelists: list[str] = []
    regexp_whitelists: list[str] = []
    ignore_failures: bool = False
    remove_users_from_project: bool = False
    do_not_touch_users_that_are_not_mentioned: bool = False
    create_non_existing_user_groups: bool = True
    sso_provider: str | None = None
    authentication_modes: list[str] = []
    max_workers: int = 1

    def to_settings(self) -> SyncSettings:
        return SyncSettings.from_params(self.model_dump(exclude_none=True))


# === Filters ===


class FilterColumn(BaseModel):
    """Label restricted by one input column."""

    label: str
    over: str | None = None
    to: str | None = None

    def to_clause(self) -> FilterClause:
        return FilterClause(label=self.label, over=self.over, to=self.to)


class FiltersParams(BaseModel):
    """Parameters of the ``filters`` command."""

    server: str | None = None
    domain: str | None = None
    project_id: str
    login_column: str = "login"
    labels: dict[str, str | FilterColumn]

    def label_columns(self) -> dict[str, Any]:
        """Column name to label identifier or clause template."""
        return {
            column: target.to_clause() if isinstance(target, FilterColumn) else target
            for column, target in self.labels.items()
        }
