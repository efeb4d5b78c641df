"""Shared types and dataclasses for user synchronization.

This module provides:
- SyncError, ConfigurationError, LoadError, PartitionError, SyncFailedError
- SyncMode: The nine synchronization strategies
- UserRecord: Desired state of one user
- Partition: Records routed to one target project or domain
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from usersync.client.api import Project


class SyncError(Exception):
    """Base exception for sync errors."""


class ConfigurationError(SyncError):
    """Invalid run configuration, detected before any remote call."""


class LoadError(SyncError):
    """Source data could not be read."""


class PartitionError(SyncError):
    """A whole target is unreachable; the partition is aborted.

    Attributes:
        partition_key: Project or client id of the failing partition.
    """

    def __init__(self, message: str, partition_key: str | None = None) -> None:
        super().__init__(message)
        self.partition_key = partition_key


class SyncFailedError(SyncError):
    """Run finished with failed or error events."""

    def __init__(self, message: str, failures: list[Any] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or []


class SyncMode(str, Enum):
    """Synchronization strategy."""

    ADD_TO_ORGANIZATION = "add_to_organization"
    REMOVE_FROM_ORGANIZATION = "remove_from_organization"
    SYNC_PROJECT = "sync_project"
    SYNC_DOMAIN_AND_PROJECT = "sync_domain_and_project"
    SYNC_MULTIPLE_PROJECTS_BASED_ON_PID = "sync_multiple_projects_based_on_pid"
    SYNC_ONE_PROJECT_BASED_ON_PID = "sync_one_project_based_on_pid"
    SYNC_ONE_PROJECT_BASED_ON_CUSTOM_ID = "sync_one_project_based_on_custom_id"
    SYNC_MULTIPLE_PROJECTS_BASED_ON_CUSTOM_ID = "sync_multiple_projects_based_on_custom_id"
    SYNC_DOMAIN_CLIENT_WORKSPACES = "sync_domain_client_workspaces"

    @classmethod
    def parse(cls, value: str | None) -> SyncMode:
        """Parse a mode tag.

        Raises:
            ConfigurationError: If the tag is not one of the known modes.
        """
        try:
            return cls(value)
        except ValueError:
            allowed = ", ".join(m.value for m in cls)
            raise ConfigurationError(
                f'The parameter "sync_mode" has to have one of the values {allowed} '
                f"or has to be empty."
            ) from None


@dataclass
class UserRecord:
    """Desired state of one user, built from one source row.

    ``user_group`` is None when the source has no group column and an empty
    list when the column is present but blank.
    """

    login: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    password: str | None = None
    role: str | None = None
    sso_provider: str | None = None
    authentication_modes: list[str] | None = None
    user_group: list[str] | None = None
    partition_key: str | None = None
    language: str | None = None
    company: str | None = None
    position: str | None = None
    country: str | None = None
    phone: str | None = None
    ip_whitelist: list[str] | None = None

    @property
    def identity(self) -> str | None:
        """Deduplication key: login, or email when login is missing."""
        return self.login or self.email

    @property
    def usable(self) -> bool:
        return bool(self.login or self.email)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class Partition:
    """Subset of records routed to one target.

    Attributes:
        key: Project id or client id identifying the target.
        records: Desired records for the target, in input order.
        project: Target project, if already looked up.
        project_id: Project id or URI to look up when ``project`` is None.
        prune_only: Partition added only to clear users of a stale client.
    """

    key: str
    records: list[UserRecord] = field(default_factory=list)
    project: Project | None = None
    project_id: str | None = None
    prune_only: bool = False
