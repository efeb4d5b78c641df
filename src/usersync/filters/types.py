"""Types for data permission (MUF) reconciliation.

This module provides:
- FilterSyncError: Reconciliation could not be applied
- FilterClause, FilterDefinition: Desired filters of one user
- DesiredFilter: Resolved filter ready to be created
- FilterPlan: Diff of desired against existing filters
- FilterReconciliation: Outcome of a reconciliation run
"""

from __future__ import annotations

from dataclasses import dataclass, field

from usersync.client.models import ExistingFilter
from usersync.core.types import ResultEvent

__all__ = [
    "DesiredFilter",
    "ExistingFilter",
    "FilterClause",
    "FilterDefinition",
    "FilterPlan",
    "FilterReconciliation",
    "FilterSyncError",
]


class FilterSyncError(Exception):
    """Filter reconciliation failed.

    Attributes:
        failed_count: Number of failed assignments reported by the server.
    """

    def __init__(self, message: str, failed_count: int = 0) -> None:
        super().__init__(message)
        self.failed_count = failed_count


@dataclass(frozen=True)
class FilterClause:
    """Restriction of one label to a set of literal values.

    ``over``/``to`` scope the clause to a hierarchy; when both are None the
    clause is global.
    """

    label: str
    values: tuple[str, ...] = ()
    over: str | None = None
    to: str | None = None

    @property
    def scoped(self) -> bool:
        return self.over is not None and self.to is not None


@dataclass
class FilterDefinition:
    """Desired filter of one user."""

    login: str
    clauses: list[FilterClause] = field(default_factory=list)


@dataclass(frozen=True)
class DesiredFilter:
    """Filter to exist for a user.

    Attributes:
        login: Owner login.
        user_uri: Profile URI of the owner.
        expression: Filter expression over label value URIs.
    """

    login: str
    user_uri: str
    expression: str

    @property
    def key(self) -> tuple[str, str]:
        return (self.user_uri, self.expression)


@dataclass
class FilterPlan:
    """Diff of desired filters against the project's filters.

    Attributes:
        matched: Existing filters that already satisfy a desired filter.
        to_create: Desired filters without an existing counterpart.
        to_delete: Existing filters of managed users no longer desired.
        issues: Skipped values and unresolved owners found while planning.
    """

    matched: list[ExistingFilter] = field(default_factory=list)
    to_create: list[DesiredFilter] = field(default_factory=list)
    to_delete: list[ExistingFilter] = field(default_factory=list)
    issues: list[ResultEvent] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not self.to_create and not self.to_delete


@dataclass
class FilterReconciliation:
    """Result of applying (or previewing) a filter plan.

    Attributes:
        created: Filters created, or that would be created in dry-run.
        deleted: Filters deleted, or that would be deleted in dry-run.
        results: One event per create or delete intent.
        issues: Skipped values and unresolved owners found while planning.
    """

    created: list[DesiredFilter] = field(default_factory=list)
    deleted: list[ExistingFilter] = field(default_factory=list)
    results: list[ResultEvent] = field(default_factory=list)
    issues: list[ResultEvent] = field(default_factory=list)

    @property
    def events(self) -> list[ResultEvent]:
        """Planning issues followed by intent events."""
        return self.issues + self.results

    @property
    def success(self) -> bool:
        return not any(e.type.is_failure for e in self.events)
