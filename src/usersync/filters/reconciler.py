"""Reconciliation of data permissions (MUFs) on a project.

Desired filter definitions are resolved to filter expressions per user and
diffed against the filters currently assigned on the project. Filters are
keyed by the profile URI of the user they relate to.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from usersync.client.api import APIError, NotFoundError
from usersync.core.reporting import NullReporter, SyncReporter
from usersync.core.types import ResultEvent
from usersync.filters.types import (
    DesiredFilter,
    ExistingFilter,
    FilterClause,
    FilterDefinition,
    FilterPlan,
    FilterReconciliation,
    FilterSyncError,
)
from usersync.sync.identity import IdentityResolver

if TYPE_CHECKING:
    from usersync.client.api import Domain, Label, PlatformClient, Project

logger = logging.getLogger(__name__)

# Expression of a clause that lets the user see nothing
EMPTY_EXPRESSION = "FALSE"


def _brick_login(item: Any) -> str | None:
    if isinstance(item, Mapping):
        value = item.get("login") or item.get("Login")
    else:
        value = getattr(item, "login", None)
    return str(value) if value else None


class FilterReconciler:
    """Creates and deletes user filters so they match the definitions.

    Usage:
        reconciler = FilterReconciler(client, project, domain)
        result = reconciler.execute(definitions, dry_run=True)
    """

    def __init__(
        self,
        client: PlatformClient,
        project: Project,
        domain: Domain | None = None,
        reporter: SyncReporter | None = None,
    ) -> None:
        """Initialize the reconciler.

        Args:
            client: Platform client used for object creation and deletion.
            project: Project whose filters are reconciled.
            domain: Domain used to resolve owners missing from the project.
            reporter: Reporting context.
        """
        self._client = client
        self._project = project
        self._domain = domain
        self._reporter = reporter or NullReporter()
        self._labels: dict[str, Label] = {}
        self._value_uris: dict[tuple[str, str], str | None] = {}

    # === Planning ===

    def build_plan(
        self,
        definitions: Iterable[FilterDefinition],
        users_brick_input: Iterable[Any] | None = None,
    ) -> FilterPlan:
        """Diff desired definitions against the project's filters.

        Args:
            definitions: Desired filters, one definition per owner login.
            users_brick_input: Users managed by this run (mappings with a
                ``login`` key or records with a ``login`` attribute). When
                given, only filters of these users may be deleted.

        Returns:
            The plan with matched, to_create and to_delete filters.

        Raises:
            FilterSyncError: If a label does not exist in the project.
        """
        resolver = IdentityResolver(self._project.users(), self._domain)
        issues: list[ResultEvent] = []

        desired: dict[tuple[str, str], DesiredFilter] = {}
        for definition in definitions:
            user = resolver.resolve(definition.login)
            if user is None:
                issues.append(
                    ResultEvent.error(
                        definition.login,
                        f"User {definition.login} was found neither in project "
                        f"{self._project.pid} nor in its domain",
                    )
                )
                continue
            if not definition.clauses:
                issues.append(ResultEvent.skipped(definition.login, "definition has no filter clauses"))
                continue
            expression = " AND ".join(
                self._clause_expression(definition.login, clause, issues) for clause in definition.clauses
            )
            wanted = DesiredFilter(login=definition.login, user_uri=user.uri, expression=expression)
            desired.setdefault(wanted.key, wanted)

        existing = self._project.data_permissions()
        managed = self._managed_user_uris(users_brick_input, resolver)

        existing_keys = {(f.related_user_uri, f.expression) for f in existing}
        plan = FilterPlan(issues=issues)
        for current in existing:
            if (current.related_user_uri, current.expression) in desired:
                plan.matched.append(current)
            elif self._deletable(current, managed):
                plan.to_delete.append(current)
        plan.to_create = [d for key, d in desired.items() if key not in existing_keys]

        logger.debug(
            f"Filter plan for project {self._project.pid}: {len(plan.matched)} matched, "
            f"{len(plan.to_create)} to create, {len(plan.to_delete)} to delete"
        )
        return plan

    @staticmethod
    def _deletable(current: ExistingFilter, managed: set[str] | None) -> bool:
        if not current.related_user_uri:
            return False
        return managed is None or current.related_user_uri in managed

    @staticmethod
    def _managed_user_uris(
        users_brick_input: Iterable[Any] | None, resolver: IdentityResolver
    ) -> set[str] | None:
        if users_brick_input is None:
            return None
        logins = [login for login in (_brick_login(item) for item in users_brick_input) if login]
        return {user.uri for user in resolver.resolve_many(logins).values()}

    def _label(self, id_or_uri: str) -> Label:
        if id_or_uri not in self._labels:
            try:
                self._labels[id_or_uri] = self._project.labels(id_or_uri)
            except NotFoundError as e:
                raise FilterSyncError(f"Label {id_or_uri} not found in project {self._project.pid}") from e
        return self._labels[id_or_uri]

    def _value_uri(self, label: Label, value: str) -> str | None:
        key = (label.uri, value)
        if key not in self._value_uris:
            self._value_uris[key] = label.find_value_uri(value)
        return self._value_uris[key]

    def _clause_expression(self, login: str, clause: FilterClause, issues: list[ResultEvent]) -> str:
        """Expression of one clause; values the label does not know are skipped."""
        label = self._label(clause.label)
        uris = []
        for value in clause.values:
            uri = self._value_uri(label, value)
            if uri is None:
                issues.append(
                    ResultEvent.skipped(login, f'Value "{value}" not found in label {label.identifier}')
                )
                continue
            uris.append(uri)

        if not uris:
            return EMPTY_EXPRESSION
        expression = f"[{label.attribute_uri}] IN ({', '.join(f'[{uri}]' for uri in uris)})"
        if clause.scoped:
            expression += f" OVER [{clause.over}] TO [{clause.to}]"
        return expression

    # === Execution ===

    def execute(
        self,
        definitions: Iterable[FilterDefinition],
        users_brick_input: Iterable[Any] | None = None,
        dry_run: bool = False,
    ) -> FilterReconciliation:
        """Plan and apply filter changes.

        In dry-run mode no mutating call is made; every intent is reported
        as a ``dry_run`` event instead.

        Raises:
            FilterSyncError: If the server reports failed assignments.
        """
        plan = self.build_plan(definitions, users_brick_input)
        pid = self._project.pid
        self._reporter.audit(
            "Synchronizing filters",
            project_id=pid,
            to_create=len(plan.to_create),
            to_delete=len(plan.to_delete),
            dry_run=dry_run,
        )

        if dry_run:
            result = FilterReconciliation(
                created=list(plan.to_create),
                deleted=list(plan.to_delete),
                issues=list(plan.issues),
            )
            result.results.extend(ResultEvent.dry_run(f.login, "create") for f in plan.to_create)
            result.results.extend(ResultEvent.dry_run(f.related_user_uri, "delete") for f in plan.to_delete)
            self._reporter.info(
                f"Dry run: would create {len(result.created)} and delete {len(result.deleted)} filters "
                f"in project {pid}"
            )
            return result

        result = FilterReconciliation(issues=list(plan.issues))
        if plan.to_create:
            self._create(plan, result)
        for current in plan.to_delete:
            try:
                self._client.delete(current.uri)
            except APIError as e:
                result.results.append(
                    ResultEvent.error(current.related_user_uri, f"Deleting {current.uri} failed: {e}")
                )
                continue
            result.deleted.append(current)
            result.results.append(ResultEvent.deleted(current.related_user_uri, current.uri))

        self._reporter.info(
            f"Created {len(result.created)} and deleted {len(result.deleted)} filters in project {pid}"
        )
        return result

    def _create(self, plan: FilterPlan, result: FilterReconciliation) -> None:
        """Create filter objects and assign them in one request."""
        pid = self._project.pid
        assignments: dict[str, list[str]] = defaultdict(list)
        for current in plan.matched:
            if current.related_user_uri:
                assignments[current.related_user_uri].append(current.uri)

        created: list[DesiredFilter] = []
        for desired in plan.to_create:
            uri = self._client.create(
                f"/gdc/md/{pid}/obj",
                {
                    "userFilter": {
                        "content": {"expression": desired.expression},
                        "meta": {"category": "userFilter", "title": f"User filter of {desired.login}"},
                    }
                },
            )
            assignments[desired.user_uri].append(uri)
            created.append(desired)

        users = {d.user_uri for d in created}
        response = self._client.post(
            f"/gdc/md/{pid}/userfilters",
            {
                "userFilters": {
                    "items": [
                        {"user": user_uri, "userFilters": uris}
                        for user_uri, uris in assignments.items()
                        if user_uri in users
                    ]
                }
            },
        )
        update = response.get("userFiltersUpdateResult") or {}
        failed = (update.get("failed") or []) if isinstance(update, dict) else []
        if failed:
            succeeded = len(created) - len(failed)
            self._reporter.info(f"{max(succeeded, 0)} filters would have been created successfully")
            self._reporter.error(f"Creating MUFs resulted in errors: {len(failed)} failed")
            raise FilterSyncError(f"Creating MUFs resulted in errors: {len(failed)} failed", len(failed))

        result.created.extend(created)
        result.results.extend(ResultEvent.created(d.login, d.expression) for d in created)
