"""Mode dispatcher for user synchronization.

This module provides:
- ModeHandler: Base class partitioning records and synchronizing partitions
- MODE_HANDLERS: One handler class per SyncMode
- UserSyncDispatcher: Validates a run and executes the handler of its mode
- resolve_custom_id: Custom project id of a project
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, ClassVar

from usersync.client.api import APIError, ForbiddenError, GoneError, NotFoundError
from usersync.core.reporting import NullReporter, SyncReporter
from usersync.core.types import ResultEvent
from usersync.sync.loader import dedupe_by_identity
from usersync.sync.pool import PartitionPool
from usersync.sync.synchronizer import SyncOptions, UserSynchronizer
from usersync.sync.types import (
    ConfigurationError,
    Partition,
    PartitionError,
    SyncMode,
    UserRecord,
)
from usersync.sync.whitelist import Whitelist

if TYPE_CHECKING:
    from usersync.client.api import Domain, PlatformClient, Project
    from usersync.client.models import ClientRecord
    from usersync.core.config import SyncSettings

logger = logging.getLogger(__name__)

CUSTOM_PROJECT_ID_KEY = "GOODOT_CUSTOM_PROJECT_ID"


def resolve_custom_id(domain: Domain, project: Project, data_product: str | None = None) -> str | None:
    """Custom project id used to match input rows to a project.

    Project metadata ``GOODOT_CUSTOM_PROJECT_ID`` wins; otherwise the id of
    the client whose workspace is this project.

    Returns:
        The custom id, or None when neither source knows the project.
    """
    custom_id = project.metadata().get(CUSTOM_PROJECT_ID_KEY)
    if custom_id:
        return str(custom_id)
    for client in domain.clients(data_product):
        if client.project_id == project.pid:
            return client.client_id
    return None


def _group_by_key(records: Sequence[UserRecord]) -> dict[str, list[UserRecord]]:
    groups: dict[str, list[UserRecord]] = {}
    for record in records:
        groups.setdefault(record.partition_key or "", []).append(record)
    return groups


@dataclass
class SyncContext:
    """Collaborators shared by the handler of one run."""

    mode: SyncMode
    platform: PlatformClient
    settings: SyncSettings
    domain: Domain
    project: Project | None
    synchronizer: UserSynchronizer
    pool: PartitionPool
    reporter: SyncReporter
    whitelist: Whitelist


class ModeHandler:
    """Turns input records into partitions and synchronizes them."""

    mode: ClassVar[SyncMode]
    requires_project: ClassVar[bool] = False
    requires_partition_key: ClassVar[bool] = False

    def __init__(self, context: SyncContext) -> None:
        self.context = context

    @classmethod
    def validate(cls, records: Sequence[UserRecord]) -> None:
        """Check records before any remote call.

        Raises:
            ConfigurationError: If a record has no partition key but the
                mode routes records by key.
        """
        if not cls.requires_partition_key:
            return
        for record in records:
            if not record.partition_key:
                raise ConfigurationError(
                    f'Column for determining the project assignment is empty for "{record.identity}"'
                )

    @property
    def project(self) -> Project:
        if self.context.project is None:
            raise ConfigurationError(f"Mode {self.mode.value} needs a project")
        return self.context.project

    def partitions(self, records: Sequence[UserRecord]) -> list[Partition]:
        raise NotImplementedError

    def run(self, records: Sequence[UserRecord]) -> list[ResultEvent]:
        return self._synchronize(self.partitions(records))

    def _synchronize(self, partitions: Sequence[Partition]) -> list[ResultEvent]:
        return self.context.pool.run(partitions, self.process)

    def process(self, partition: Partition) -> list[ResultEvent]:
        """Import a partition's records into its project."""
        try:
            project = partition.project or self._lookup_project(partition)
            self.context.reporter.audit(
                "Synchronizing",
                mode=self.context.mode.value,
                project_id=project.pid,
                data_rows=len(partition.records),
            )
            return self.context.synchronizer.import_users(
                project, self.context.domain, partition.records
            )
        except NotFoundError as e:
            raise PartitionError(
                f'Project "{partition.key}" was not found. Please check your project ids in the source file',
                partition.key,
            ) from e
        except GoneError as e:
            raise PartitionError(
                f"Seems like you (user executing the script - {self.context.platform.current_login}) "
                f'do not have access to project "{partition.key}"',
                partition.key,
            ) from e
        except ForbiddenError as e:
            raise PartitionError(
                f"User {self.context.platform.current_login} is not enabled within project "
                f'"{partition.key}"',
                partition.key,
            ) from e

    def _lookup_project(self, partition: Partition) -> Project:
        project = self.context.platform.projects(partition.project_id or partition.key)
        if project is None:
            raise NotFoundError(f"Project {partition.project_id or partition.key} not found", 404)
        return project


class AddToOrganizationHandler(ModeHandler):
    mode = SyncMode.ADD_TO_ORGANIZATION

    def partitions(self, records: Sequence[UserRecord]) -> list[Partition]:
        return [Partition(key=self.context.domain.name, records=dedupe_by_identity(records))]

    def process(self, partition: Partition) -> list[ResultEvent]:
        return self.context.synchronizer.create_domain_users(self.context.domain, partition.records)


class RemoveFromOrganizationHandler(ModeHandler):
    mode = SyncMode.REMOVE_FROM_ORGANIZATION

    def partitions(self, records: Sequence[UserRecord]) -> list[Partition]:
        return [Partition(key=self.context.domain.name, records=dedupe_by_identity(records))]

    def process(self, partition: Partition) -> list[ResultEvent]:
        domain = self.context.domain
        reporter = self.context.reporter
        events: list[ResultEvent] = []
        users = []
        missing = 0
        for record in partition.records:
            login = record.identity
            if not login:
                continue
            if self.context.whitelist.is_whitelisted(login):
                reporter.info(f"Keeping whitelisted user {login} in domain {domain.name}")
                events.append(ResultEvent.skipped(login, "whitelisted"))
                continue
            user = domain.find_user_by_login(login)
            if user is None:
                missing += 1
                events.append(ResultEvent.skipped(login, f"not found in domain {domain.name}"))
                continue
            users.append(user)
        if missing:
            reporter.info(f"{missing} users were not found (or were deleted) in domain {domain.name}")
        reporter.warning(f"Deleting {len(users)} users from domain {domain.name}")
        reporter.audit("Synchronizing", mode=self.mode.value, domain=domain.name, data_rows=len(users))
        return events + self.context.synchronizer.delete_domain_users(domain, users)


class SyncProjectHandler(ModeHandler):
    mode = SyncMode.SYNC_PROJECT
    requires_project = True

    def partitions(self, records: Sequence[UserRecord]) -> list[Partition]:
        return [Partition(key=self.project.pid, records=list(records), project=self.project)]


class SyncDomainAndProjectHandler(SyncProjectHandler):
    """Creates domain accounts, then imports the same records into the project."""

    mode = SyncMode.SYNC_DOMAIN_AND_PROJECT

    def run(self, records: Sequence[UserRecord]) -> list[ResultEvent]:
        reporter = self.context.reporter
        reporter.audit("Create users", mode=self.mode.value, data_rows=len(records))
        events = self.context.synchronizer.create_domain_users(self.context.domain, records)
        reporter.audit("Import users", mode=self.mode.value, data_rows=len(records))
        return events + self._synchronize(self.partitions(records))


class MultipleProjectsByPidHandler(ModeHandler):
    mode = SyncMode.SYNC_MULTIPLE_PROJECTS_BASED_ON_PID
    requires_partition_key = True

    def partitions(self, records: Sequence[UserRecord]) -> list[Partition]:
        return [Partition(key=pid, records=users) for pid, users in _group_by_key(records).items()]


class OneProjectByPidHandler(ModeHandler):
    mode = SyncMode.SYNC_ONE_PROJECT_BASED_ON_PID
    requires_project = True

    def partitions(self, records: Sequence[UserRecord]) -> list[Partition]:
        selected = [r for r in records if r.partition_key == self.project.pid]
        return [Partition(key=self.project.pid, records=selected, project=self.project)]


class OneProjectByCustomIdHandler(ModeHandler):
    mode = SyncMode.SYNC_ONE_PROJECT_BASED_ON_CUSTOM_ID
    requires_project = True
    requires_partition_key = True

    def partitions(self, records: Sequence[UserRecord]) -> list[Partition]:
        project = self.project
        reporter = self.context.reporter
        custom_id = resolve_custom_id(self.context.domain, project, self.context.settings.data_product)
        selected = [r for r in records if r.partition_key == custom_id]
        if not selected:
            reporter.warning(
                f'Project "{project.pid}" does not match any client ids in input source '
                f"(both {CUSTOM_PROJECT_ID_KEY} and SEGMENT/CLIENT). "
                "We are unable to get the value to filter users."
            )
        reporter.info(f"Project {project.pid} will receive {len(selected)} from {len(records)} users")
        return [Partition(key=project.pid, records=selected, project=project)]


class MultipleProjectsByCustomIdHandler(ModeHandler):
    """Routes records to the workspace of the client named by their key."""

    mode = SyncMode.SYNC_MULTIPLE_PROJECTS_BASED_ON_CUSTOM_ID
    requires_partition_key = True

    def _clients(self) -> list[ClientRecord]:
        return self.context.domain.clients(self.context.settings.data_product)

    def _client_partition(self, client: ClientRecord, users: list[UserRecord]) -> Partition:
        if not client.project_id:
            raise PartitionError(f"Client {client.client_id} does not have project.", client.client_id)
        self.context.reporter.info(
            f"Project {client.project_id} of client {client.client_id} will receive {len(users)} users"
        )
        return Partition(key=client.project_id, records=users, project_id=client.project_uri)

    def _missing_client(self, client_id: str) -> PartitionError:
        return PartitionError(
            f'The client "{client_id}" does not exist in data product '
            f'"{self.context.settings.data_product}"',
            client_id,
        )

    def partitions(self, records: Sequence[UserRecord]) -> list[Partition]:
        clients = {c.client_id: c for c in self._clients()}
        partitions = []
        for client_id, users in _group_by_key(records).items():
            client = clients.get(client_id)
            if client is None:
                raise self._missing_client(client_id)
            partitions.append(self._client_partition(client, users))
        return partitions


class DomainClientWorkspacesHandler(MultipleProjectsByCustomIdHandler):
    """Client workspaces of a data product, optionally restricted to segments.

    Workspaces of clients absent from the input are cleared unless
    untouched users are to be left alone.
    """

    mode = SyncMode.SYNC_DOMAIN_CLIENT_WORKSPACES

    def _in_segments(self, client: ClientRecord) -> bool:
        segments = self.context.settings.segments
        if segments is None:
            return True
        segment = client.segment_uri or ""
        return segment in segments or segment.rstrip("/").rsplit("/", 1)[-1] in segments

    def run(self, records: Sequence[UserRecord]) -> list[ResultEvent]:
        reporter = self.context.reporter
        all_clients = self._clients()
        by_id = {c.client_id: c for c in all_clients}
        domain_clients = [c for c in all_clients if self._in_segments(c)]
        in_segments = {c.client_id for c in domain_clients}

        events: list[ResultEvent] = []
        partitions = []
        working: set[str] = set()
        for client_id, users in _group_by_key(records).items():
            if client_id not in in_segments:
                if client_id not in by_id:
                    raise self._missing_client(client_id)
                reporter.info(f'Client "{client_id}" does not belong to filtered segments')
                events.append(ResultEvent.skipped(client_id, "client outside filtered segments"))
                continue
            working.add(client_id)
            partitions.append(self._client_partition(by_id[client_id], users))

        reporter.debug(f"Working client ids are: {', '.join(sorted(working))}")

        if not self.context.settings.do_not_touch_users_that_are_not_mentioned:
            for client in domain_clients:
                if client.client_id in working:
                    continue
                if not client.project_id:
                    reporter.info(f"Client {client.client_id} has no project.")
                    events.append(ResultEvent.skipped(client.client_id, "client has no project"))
                    continue
                partitions.append(
                    Partition(
                        key=client.client_id,
                        project_id=client.project_uri,
                        prune_only=True,
                    )
                )

        return events + self._synchronize(partitions)

    def process(self, partition: Partition) -> list[ResultEvent]:
        if not partition.prune_only:
            return super().process(partition)

        reporter = self.context.reporter
        client_id = partition.key
        try:
            project = self.context.platform.projects(partition.project_id)
        except APIError as e:
            reporter.error(f"Error when accessing project of client {client_id}. Error: {e}")
            return [ResultEvent.skipped(client_id, f"project not accessible: {e}")]
        if project is None:
            reporter.info(f"Client {client_id} has no project.")
            return [ResultEvent.skipped(client_id, "client has no project")]
        if project.deleted:
            reporter.info(f"Project {project.pid} of client {client_id} is deleted.")
            return [ResultEvent.skipped(client_id, f"project {project.pid} is deleted")]

        reporter.info(f"Synchronizing all users in project {project.pid} of client {client_id}")
        reporter.audit("Synchronizing all users", project_id=project.pid, client_id=client_id)
        return super().process(Partition(key=project.pid, project=project))


MODE_HANDLERS: dict[SyncMode, type[ModeHandler]] = {
    handler.mode: handler
    for handler in (
        AddToOrganizationHandler,
        RemoveFromOrganizationHandler,
        SyncProjectHandler,
        SyncDomainAndProjectHandler,
        MultipleProjectsByPidHandler,
        OneProjectByPidHandler,
        OneProjectByCustomIdHandler,
        MultipleProjectsByCustomIdHandler,
        DomainClientWorkspacesHandler,
    )
}


class UserSyncDispatcher:
    """Runs one user synchronization in the configured mode.

    Usage:
        dispatcher = UserSyncDispatcher(platform, settings, reporter)
        events = dispatcher.run(records)
    """

    def __init__(
        self,
        platform: PlatformClient,
        settings: SyncSettings,
        reporter: SyncReporter | None = None,
    ) -> None:
        self._platform = platform
        self._settings = settings
        self._reporter = reporter or NullReporter()

    def run(self, records: Sequence[UserRecord]) -> list[ResultEvent]:
        """Synchronize ``records`` and return every result event.

        Raises:
            ConfigurationError: On an unknown mode, a missing domain or
                project, or a record without partition key in a keyed mode.
                Raised before any mutating call.
            PartitionError: If a target is unreachable and failures are
                not tolerated.
        """
        settings = self._settings
        mode = SyncMode.parse(settings.mode)
        handler_class = MODE_HANDLERS[mode]

        if not settings.domain:
            raise ConfigurationError("Either organization or domain has to be specified in params")
        handler_class.validate(records)

        project = None
        if handler_class.requires_project:
            project = self._platform.projects(settings.project_id)
            if project is None:
                raise ConfigurationError("Either project or project_id has to be specified in params")

        whitelist = Whitelist(
            settings.whitelists,
            settings.regexp_whitelists,
            current_login=self._platform.current_login,
        )
        options = SyncOptions(
            whitelist=whitelist,
            ignore_failures=settings.ignore_failures,
            remove_users_from_project=settings.remove_users_from_project,
            do_not_touch_users_that_are_not_mentioned=settings.do_not_touch_users_that_are_not_mentioned,
            create_non_existing_user_groups=settings.create_non_existing_user_groups,
        )
        context = SyncContext(
            mode=mode,
            platform=self._platform,
            settings=settings,
            domain=self._platform.domain(settings.domain),
            project=project,
            synchronizer=UserSynchronizer(options, self._reporter),
            pool=PartitionPool(settings.max_workers, fail_fast=not settings.ignore_failures),
            reporter=self._reporter,
            whitelist=whitelist,
        )

        self._reporter.audit("Synchronizing", mode=mode.value, data_rows=len(records))
        self._reporter.info(f'Synchronizing in mode "{mode.value}"')
        return handler_class(context).run(records)
