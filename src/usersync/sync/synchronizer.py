"""Domain and project user synchronization.

This module provides:
- SyncOptions: Configuration bundle shared by every partition
- UserSynchronizer: Creates, updates and removes users of a domain or project
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from usersync.client.api import APIError
from usersync.client.models import USER_FIELDS
from usersync.core.reporting import NullReporter, SyncReporter
from usersync.core.types import ResultEvent
from usersync.sync.identity import IdentityResolver
from usersync.sync.loader import dedupe_by_identity
from usersync.sync.types import SyncError, UserRecord
from usersync.sync.whitelist import Whitelist

if TYPE_CHECKING:
    from usersync.client.api import Domain, Project
    from usersync.client.models import DomainUser, Role, UserGroup

logger = logging.getLogger(__name__)

DEFAULT_ROLE = "readOnlyUser"


@dataclass
class SyncOptions:
    """Configuration bundle shared by every partition of a run."""

    whitelist: Whitelist = field(default_factory=Whitelist)
    ignore_failures: bool = False
    remove_users_from_project: bool = False
    do_not_touch_users_that_are_not_mentioned: bool = False
    create_non_existing_user_groups: bool = True


def _profile_values(record: UserRecord) -> dict[str, Any]:
    return {name: getattr(record, name) for name in USER_FIELDS}


def _identified(records: Iterable[UserRecord]) -> Iterator[tuple[str, UserRecord]]:
    """Unique records paired with their login; records without one are dropped."""
    for record in dedupe_by_identity(records):
        if record.identity:
            yield record.identity, record


def _changed_fields(user: DomainUser, record: UserRecord) -> list[str]:
    """Profile fields set on the record that differ from the account."""
    changed = []
    for name, value in _profile_values(record).items():
        if value is None:
            continue
        current = getattr(user, name)
        if isinstance(value, list):
            if sorted(value) != sorted(current or []):
                changed.append(name)
        elif value != current:
            changed.append(name)
    return changed


class UserSynchronizer:
    """Applies desired user records to a domain or a project."""

    def __init__(self, options: SyncOptions, reporter: SyncReporter | None = None) -> None:
        self._options = options
        self._reporter = reporter or NullReporter()

    @property
    def options(self) -> SyncOptions:
        return self._options

    def _fail(self, events: list[ResultEvent], event: ResultEvent, cause: Exception | None = None) -> None:
        """Record a failure; abort the partition unless failures are tolerated."""
        events.append(event)
        logger.warning(f"{event.type.value}: {event.subject}: {event.detail}")
        if not self._options.ignore_failures:
            raise SyncError(f"{event.subject}: {event.detail}") from cause

    def _call(
        self,
        events: list[ResultEvent],
        subject: str,
        action: str,
        fn: Callable[..., Any],
        *args: Any,
    ) -> Any:
        """Run a remote call, turning API errors into error events.

        Returns:
            The call result, or None if it failed.
        """
        try:
            return fn(*args) if args else fn()
        except APIError as e:
            self._fail(events, ResultEvent.error(subject, f"{action} failed: {e}"), e)
            return None

    # === Domain ===

    def create_domain_users(self, domain: Domain, records: Iterable[UserRecord]) -> list[ResultEvent]:
        """Create missing accounts and update changed ones.

        Args:
            domain: Target organization.
            records: Desired records; duplicates by login are ignored.

        Returns:
            One event per created or updated account, plus failures.
        """
        events: list[ResultEvent] = []
        existing = {u.login.lower(): u for u in domain.list_users()}

        for login, record in _identified(records):
            user = existing.get(login.lower())
            if user is None:
                values = {"login": login, "password": record.password, **_profile_values(record)}
                created = self._call(events, login, "Creating user", domain.create_user, values)
                if created is not None:
                    existing[login.lower()] = created
                    events.append(ResultEvent.created(login, f"created in domain {domain.name}"))
                continue

            changed = _changed_fields(user, record)
            if not changed:
                continue
            values = {"login": user.login, **_profile_values(record)}
            before = len(events)
            self._call(events, login, "Updating user", domain.update_user, user, values)
            if len(events) == before:
                events.append(ResultEvent.updated(login, f"changed {', '.join(changed)}"))
        return events

    def delete_domain_users(self, domain: Domain, users: Iterable[DomainUser]) -> list[ResultEvent]:
        """Delete accounts from a domain."""
        events: list[ResultEvent] = []
        for user in users:
            before = len(events)
            self._call(events, user.login, "Deleting user", domain.delete_user, user)
            if len(events) == before:
                events.append(ResultEvent.deleted(user.login, f"deleted from domain {domain.name}"))
        return events

    # === Project ===

    def import_users(
        self,
        project: Project,
        domain: Domain | None,
        records: Iterable[UserRecord],
    ) -> list[ResultEvent]:
        """Make project membership match the desired records.

        Members not present in ``records`` are removed or disabled unless
        pruning is disabled or they are whitelisted.

        Args:
            project: Target project.
            domain: Domain used to find users not yet in the project.
            records: Desired records (may be empty to clear the project).

        Returns:
            Events for every membership, role and group change.

        Raises:
            SyncError: On the first failure when failures are not tolerated.
        """
        events: list[ResultEvent] = []
        desired = list(_identified(records))
        roster = project.users()
        resolver = IdentityResolver(roster, domain)
        roles = self._role_index(project.roles()) if desired else {}

        desired_logins: set[str] = set()
        memberships: dict[str, tuple[str, list[str]]] = {}

        for login, record in desired:
            desired_logins.add(login.lower())

            role = self._find_role(roles, record.role)
            if role is None:
                self._fail(
                    events,
                    ResultEvent.failed(login, f'Role "{record.role}" not found in project {project.pid}'),
                )
                continue

            user_uri = self._ensure_member(project, resolver, login, role, events, domain)
            if user_uri is not None and record.user_group is not None:
                memberships[user_uri] = (login, record.user_group)

        if memberships:
            self._sync_groups(project, memberships, events)

        if not self._options.do_not_touch_users_that_are_not_mentioned:
            self._prune(project, roster, desired_logins, events)

        return events

    @staticmethod
    def _role_index(roles: Iterable[Role]) -> dict[str, Role]:
        index: dict[str, Role] = {}
        for role in roles:
            for key in (role.identifier, role.title, role.uri):
                if key:
                    index.setdefault(key.lower(), role)
        return index

    @staticmethod
    def _find_role(index: dict[str, Role], name: str | None) -> Role | None:
        return index.get((name or DEFAULT_ROLE).lower())

    def _ensure_member(
        self,
        project: Project,
        resolver: IdentityResolver,
        login: str,
        role: Role,
        events: list[ResultEvent],
        domain: Domain | None,
    ) -> str | None:
        """Add, re-enable or re-role one user.

        Returns:
            Profile URI of the member, or None if it could not be added.
        """
        member = resolver.in_project(login)
        if member is not None and member.enabled:
            if member.role_uri != role.uri:
                before = len(events)
                self._call(events, login, "Changing role", project.set_user_role, member.uri, role.uri)
                if len(events) == before:
                    events.append(ResultEvent.updated(login, f"role set to {role.identifier}"))
            return member.uri

        user = member or resolver.in_domain(login)
        if user is None:
            domain_name = domain.name if domain is not None else "(none)"
            self._fail(
                events,
                ResultEvent.failed(login, f"User does not exist in domain {domain_name}"),
            )
            return None

        before = len(events)
        self._call(events, login, "Adding user", project.add_user, user.uri, role.uri)
        if len(events) != before:
            return None
        if member is not None:
            events.append(ResultEvent.updated(login, f"re-enabled in project {project.pid}"))
        else:
            events.append(ResultEvent.created(login, f"added to project {project.pid} as {role.identifier}"))
        return user.uri

    def _sync_groups(
        self,
        project: Project,
        memberships: dict[str, tuple[str, list[str]]],
        events: list[ResultEvent],
    ) -> None:
        """Set group membership of users whose records list groups."""
        groups: dict[str, UserGroup] = {g.name.lower(): g for g in project.user_groups()}
        additions: dict[str, list[str]] = defaultdict(list)
        removals: dict[str, list[str]] = defaultdict(list)
        logins = {uri: login for uri, (login, _) in memberships.items()}

        for user_uri, (login, names) in memberships.items():
            wanted: set[str] = set()
            for name in names:
                key = name.lower()
                if key not in groups:
                    if not self._options.create_non_existing_user_groups:
                        self._fail(events, ResultEvent.failed(login, f'User group "{name}" does not exist'))
                        continue
                    group = self._call(events, name, "Creating user group", project.create_user_group, name)
                    if group is None:
                        continue
                    groups[key] = group
                    events.append(ResultEvent.created(f"group:{name}", "user group created"))
                wanted.add(key)
                if user_uri not in groups[key].member_uris:
                    additions[key].append(user_uri)
            for key, group in groups.items():
                if key not in wanted and user_uri in group.member_uris:
                    removals[key].append(user_uri)

        for key, uris in additions.items():
            group = groups[key]
            before = len(events)
            self._call(events, group.name, "Adding group members", project.add_group_members, group, uris)
            if len(events) == before:
                events.extend(ResultEvent.updated(logins[u], f"added to group {group.name}") for u in uris)
        for key, uris in removals.items():
            group = groups[key]
            before = len(events)
            self._call(events, group.name, "Removing group members", project.remove_group_members, group, uris)
            if len(events) == before:
                events.extend(ResultEvent.updated(logins[u], f"removed from group {group.name}") for u in uris)

    def _prune(
        self,
        project: Project,
        roster: Iterable[Any],
        desired_logins: set[str],
        events: list[ResultEvent],
    ) -> None:
        """Remove or disable enabled members missing from the desired set."""
        whitelist = self._options.whitelist
        for member in roster:
            if not member.enabled or member.login.lower() in desired_logins:
                continue
            if whitelist.is_whitelisted(member.login):
                logger.debug(f"Keeping whitelisted user {member.login} in project {project.pid}")
                continue
            before = len(events)
            if self._options.remove_users_from_project:
                self._call(events, member.login, "Removing user", project.remove_user, member.uri)
                detail = f"removed from project {project.pid}"
            else:
                self._call(events, member.login, "Disabling user", project.disable_user, member.uri)
                detail = f"disabled in project {project.pid}"
            if len(events) == before:
                events.append(ResultEvent.deleted(member.login, detail))
