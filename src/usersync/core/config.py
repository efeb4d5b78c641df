"""Configuration classes for usersync.

This module defines the connection settings, the column mapping used to
read user records and the settings bundle consumed by the dispatcher.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Any

TRUE_VALUES = frozenset({"true", "1", "yes", "y", "on"})


def to_boolean(value: Any, default: bool = False) -> bool:
    """Coerce a parameter value to a boolean.

    Args:
        value: Raw parameter value (bool, str, int or None).
        default: Value returned when ``value`` is None.

    Returns:
        Parsed boolean.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v) for v in value]


@dataclass
class ServerConfig:
    """Configuration for connecting to the platform API.

    Attributes:
        server_url: Base URL of the server (e.g., "https://secure.example.com").
        token: API token of the account performing the run.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str
    token: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")


@dataclass(frozen=True)
class ColumnMapping:
    """Logical user field to source column name.

    Every column name is compared case-insensitively. ``partition_column``
    has no default: it is only read when configured.
    """

    first_name: str = "first_name"
    last_name: str = "last_name"
    login: str = "login"
    password: str = "password"
    email: str = "email"
    role: str = "role"
    sso_provider: str = "sso_provider"
    authentication_modes: str = "authentication_modes"
    user_groups: str = "user_groups"
    language: str = "language"
    company: str = "company"
    position: str = "position"
    country: str = "country"
    phone: str = "phone"
    ip_whitelist: str = "ip_whitelist"
    partition_column: str | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> ColumnMapping:
        """Build a mapping from ``<field>_column`` parameters.

        ``multiple_projects_column`` configures the partition column.
        """
        overrides: dict[str, Any] = {}
        for f in fields(cls):
            if f.name == "partition_column":
                continue
            value = params.get(f"{f.name}_column")
            if value:
                overrides[f.name] = str(value).lower()
        partition = params.get("multiple_projects_column")
        if partition:
            overrides["partition_column"] = str(partition)
        return cls(**overrides)


@dataclass
class SyncSettings:
    """Settings for one user synchronization run.

    Attributes:
        mode: Synchronization mode tag (validated by the dispatcher).
        domain: Organization (domain) name.
        project_id: Target project for single-project modes.
        data_product: Data product used to enumerate clients.
        segments: Segment URIs restricting client workspace sync.
        whitelists: Logins never removed.
        regexp_whitelists: Patterns of logins never removed.
        ignore_failures: Record per-user failures and continue.
        remove_users_from_project: Remove (instead of disable) unmentioned users.
        do_not_touch_users_that_are_not_mentioned: Skip pruning entirely.
        create_non_existing_user_groups: Create groups listed in input.
        sso_provider: Fixed SSO provider overriding the input column.
        authentication_modes: Fixed authentication modes overriding the column.
        columns: Column mapping for the input rows.
        max_workers: Partitions processed concurrently (1 = sequential).
    """

    mode: str = "sync_domain_and_project"
    domain: str | None = None
    project_id: str | None = None
    data_product: str | None = None
    segments: list[str] | None = None
    whitelists: list[str] = field(default_factory=list)
    regexp_whitelists: list[str] = field(default_factory=list)
    ignore_failures: bool = False
    remove_users_from_project: bool = False
    do_not_touch_users_that_are_not_mentioned: bool = False
    create_non_existing_user_groups: bool = True
    sso_provider: str | None = None
    authentication_modes: list[str] = field(default_factory=list)
    columns: ColumnMapping = field(default_factory=ColumnMapping)
    max_workers: int = 1

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> SyncSettings:
        """Build settings from a flat parameter mapping.

        Accepts ``organization`` as an alias of ``domain`` and
        ``gdc_project_id`` as an alias of ``project_id``.
        """
        segments = params.get("segments")
        return cls(
            mode=params.get("sync_mode") or "sync_domain_and_project",
            domain=params.get("organization") or params.get("domain"),
            project_id=params.get("gdc_project_id") or params.get("project_id"),
            data_product=params.get("data_product"),
            segments=_as_list(segments) if segments is not None else None,
            whitelists=_as_list(params.get("whitelists")),
            regexp_whitelists=_as_list(params.get("regexp_whitelists")),
            ignore_failures=to_boolean(params.get("ignore_failures")),
            remove_users_from_project=to_boolean(params.get("remove_users_from_project")),
            do_not_touch_users_that_are_not_mentioned=to_boolean(
                params.get("do_not_touch_users_that_are_not_mentioned")
            ),
            create_non_existing_user_groups=to_boolean(
                params.get("create_non_existing_user_groups"), default=True
            ),
            sso_provider=params.get("sso_provider"),
            authentication_modes=[
                m.upper() for m in _as_list(params.get("authentication_modes"))
            ],
            columns=ColumnMapping.from_params(params),
            max_workers=int(params.get("max_workers") or 1),
        )
