"""Tests for the mode dispatcher."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from conftest import FakeDomain, FakePlatform, FakeProject, domain_user, member, profile

from usersync.client.api import ForbiddenError, GoneError, NotFoundError
from usersync.client.models import ClientRecord
from usersync.core.config import SyncSettings
from usersync.core.types import ResultType
from usersync.sync.dispatcher import MODE_HANDLERS, SyncContext, UserSyncDispatcher, resolve_custom_id
from usersync.sync.types import ConfigurationError, PartitionError, SyncMode, UserRecord


def settings(mode: str, **overrides: object) -> SyncSettings:
    values: dict[str, object] = {"mode": mode, "domain": "acme", "project_id": "p1"}
    values.update(overrides)
    return SyncSettings(**values)  # type: ignore[arg-type]


def client(client_id: str, pid: str | None, segment: str = "/gdc/domains/acme/segments/basic") -> ClientRecord:
    return ClientRecord(
        client_id=client_id,
        segment_uri=segment,
        project_uri=f"/gdc/projects/{pid}" if pid else None,
    )


class TestModeValidation:
    """Tests for configuration checks done before any remote call."""

    def test_every_mode_has_a_handler(self) -> None:
        """Should register exactly one handler per mode."""
        assert set(MODE_HANDLERS) == set(SyncMode)

    def test_unknown_mode_makes_no_remote_call(self) -> None:
        """Should fail on an unknown mode without touching the platform."""
        platform = MagicMock()

        with pytest.raises(ConfigurationError, match="sync_mode"):
            UserSyncDispatcher(platform, settings("sync_everything")).run([UserRecord(login="a@acme.com")])

        assert platform.mock_calls == []

    def test_error_lists_allowed_modes(self) -> None:
        """Should name the allowed values."""
        with pytest.raises(ConfigurationError) as exc_info:
            UserSyncDispatcher(MagicMock(), settings("bogus")).run([])

        assert "sync_domain_client_workspaces" in str(exc_info.value)

    def test_missing_domain(self) -> None:
        """Should require a domain."""
        platform = MagicMock()

        with pytest.raises(ConfigurationError, match="domain"):
            UserSyncDispatcher(platform, settings("sync_project", domain=None)).run([])

        assert platform.mock_calls == []

    def test_missing_project(self, platform: FakePlatform) -> None:
        """Should require an existing project in single-project modes."""
        with pytest.raises(ConfigurationError, match="project"):
            UserSyncDispatcher(platform, settings("sync_project", project_id="nope")).run([])

    def test_blank_custom_id_is_fatal(self) -> None:
        """Should reject records without partition key before any remote call."""
        platform = MagicMock()
        records = [UserRecord(login="a@acme.com", partition_key="c1"), UserRecord(login="b@acme.com")]

        with pytest.raises(ConfigurationError, match="b@acme.com"):
            UserSyncDispatcher(platform, settings("sync_multiple_projects_based_on_custom_id")).run(records)

        assert platform.mock_calls == []

    def test_project_handler_without_project(self) -> None:
        """Should raise rather than run a project mode with no project."""
        context = SyncContext(
            mode=SyncMode.SYNC_PROJECT,
            platform=MagicMock(),
            settings=settings("sync_project"),
            domain=MagicMock(),
            project=None,
            synchronizer=MagicMock(),
            pool=MagicMock(),
            reporter=MagicMock(),
            whitelist=MagicMock(),
        )
        handler = MODE_HANDLERS[SyncMode.SYNC_PROJECT](context)

        with pytest.raises(ConfigurationError, match="sync_project needs a project"):
            handler.run([UserRecord(login="a@acme.com")])


class TestOrganizationModes:
    """Tests for add_to_organization and remove_from_organization."""

    def test_add_with_duplicate_logins_creates_once(self, platform: FakePlatform, domain: FakeDomain) -> None:
        """Should create a duplicated login exactly once."""
        records = [
            UserRecord(login="dave@acme.com"),
            UserRecord(login="dave@acme.com", first_name="Again"),
            UserRecord(login="erin@acme.com"),
        ]

        events = UserSyncDispatcher(platform, settings("add_to_organization")).run(records)

        assert domain.created == ["dave@acme.com", "erin@acme.com"]
        assert [e.type for e in events] == [ResultType.CREATED, ResultType.CREATED]

    def test_remove_records_unknown_logins(self, platform: FakePlatform, domain: FakeDomain) -> None:
        """Should delete found accounts and record a skipped event for missing ones."""
        records = [UserRecord(login="ghost@acme.com"), UserRecord(login="alice@acme.com")]

        events = UserSyncDispatcher(platform, settings("remove_from_organization")).run(records)

        assert domain.deleted == ["alice@acme.com"]
        assert [(e.type, e.subject) for e in events] == [
            (ResultType.SKIPPED, "ghost@acme.com"),
            (ResultType.DELETED, "alice@acme.com"),
        ]
        assert events[0].detail == "not found in domain acme"

    def test_remove_keeps_whitelisted_and_running_account(
        self, platform: FakePlatform, domain: FakeDomain
    ) -> None:
        """Should never delete the running account or a whitelisted login."""
        records = [
            UserRecord(login="admin@acme.com"),
            UserRecord(login="carol@acme.com"),
            UserRecord(login="bob@acme.com"),
            UserRecord(login="alice@acme.com"),
        ]

        events = UserSyncDispatcher(
            platform,
            settings(
                "remove_from_organization",
                whitelists=["carol@acme.com"],
                regexp_whitelists=[r"^bob@"],
            ),
        ).run(records)

        assert domain.deleted == ["alice@acme.com"]
        assert [(e.type, e.subject) for e in events] == [
            (ResultType.SKIPPED, "admin@acme.com"),
            (ResultType.SKIPPED, "carol@acme.com"),
            (ResultType.SKIPPED, "bob@acme.com"),
            (ResultType.DELETED, "alice@acme.com"),
        ]


class TestProjectModes:
    """Tests for single and multiple project modes."""

    def test_sync_project(self, platform: FakePlatform, project: FakeProject) -> None:
        """Should import all records into the configured project."""
        records = [UserRecord(login="alice@acme.com"), UserRecord(login="bob@acme.com")]

        UserSyncDispatcher(platform, settings("sync_project")).run(records)

        assert [c[1] for c in project.mutations("add")] == [profile("alice@acme.com"), profile("bob@acme.com")]

    def test_sync_domain_and_project_creates_accounts_first(
        self, platform: FakePlatform, domain: FakeDomain, project: FakeProject
    ) -> None:
        """Should create domain accounts before importing them."""
        events = UserSyncDispatcher(platform, settings("sync_domain_and_project")).run(
            [UserRecord(login="dave@acme.com")]
        )

        assert domain.created == ["dave@acme.com"]
        assert project.mutations("add")[0][1] == profile("dave@acme.com")
        assert [e.type for e in events] == [ResultType.CREATED, ResultType.CREATED]

    def test_multiple_projects_partitioned_by_pid(self, domain: FakeDomain) -> None:
        """Should import each group of records into its own project."""
        p1, p2 = FakeProject("p1"), FakeProject("p2", members=[member("carol@acme.com", "p2")])
        platform = FakePlatform(domain, [p1, p2])
        records = [
            UserRecord(login="alice@acme.com", partition_key="p1"),
            UserRecord(login="bob@acme.com", partition_key="p2"),
            UserRecord(login="carol@acme.com", partition_key="p1"),
        ]

        UserSyncDispatcher(platform, settings("sync_multiple_projects_based_on_pid")).run(records)

        assert [c[1] for c in p1.mutations("add")] == [profile("alice@acme.com"), profile("carol@acme.com")]
        assert [c[1] for c in p2.mutations("add")] == [profile("bob@acme.com")]
        assert p2.mutations("disable") == [("disable", profile("carol@acme.com"))]

    @pytest.mark.parametrize(
        ("error", "message"),
        [
            (NotFoundError("missing", 404), 'Project "p9" was not found'),
            (GoneError("gone", 410), 'do not have access to project "p9"'),
            (ForbiddenError("forbidden", 403), 'User admin@acme.com is not enabled within project "p9"'),
        ],
    )
    def test_unreachable_project_is_fatal(self, domain: FakeDomain, error: Exception, message: str) -> None:
        """Should translate target errors into a message naming the project."""
        platform = FakePlatform(domain, errors={"p9": error})
        records = [UserRecord(login="alice@acme.com", partition_key="p9")]

        with pytest.raises(PartitionError, match=message) as exc_info:
            UserSyncDispatcher(platform, settings("sync_multiple_projects_based_on_pid")).run(records)

        assert exc_info.value.partition_key == "p9"

    def test_unknown_project_recorded_when_failures_tolerated(self, domain: FakeDomain) -> None:
        """Should keep syncing other projects when failures are tolerated."""
        p1 = FakeProject("p1")
        platform = FakePlatform(domain, [p1])
        records = [
            UserRecord(login="alice@acme.com", partition_key="p9"),
            UserRecord(login="bob@acme.com", partition_key="p1"),
        ]

        events = UserSyncDispatcher(
            platform, settings("sync_multiple_projects_based_on_pid", ignore_failures=True)
        ).run(records)

        assert [e.type for e in events] == [ResultType.ERROR, ResultType.CREATED]
        assert events[0].subject == "p9"

    def test_one_project_based_on_pid_filters_records(self, platform: FakePlatform, project: FakeProject) -> None:
        """Should import only records whose key is the project id."""
        records = [
            UserRecord(login="alice@acme.com", partition_key="p1"),
            UserRecord(login="bob@acme.com", partition_key="p2"),
        ]

        UserSyncDispatcher(platform, settings("sync_one_project_based_on_pid")).run(records)

        assert [c[1] for c in project.mutations("add")] == [profile("alice@acme.com")]

    def test_parallel_partitions_keep_submission_order(self, domain: FakeDomain) -> None:
        """Should merge events of concurrent partitions in input order."""
        projects = [FakeProject(f"p{i}") for i in range(1, 5)]
        platform = FakePlatform(domain, projects)
        records = [UserRecord(login="alice@acme.com", partition_key=p.pid) for p in projects]

        events = UserSyncDispatcher(
            platform, settings("sync_multiple_projects_based_on_pid", max_workers=3)
        ).run(records)

        assert [e.detail.split()[3] for e in events] == ["p1", "p2", "p3", "p4"]


class TestCustomIdModes:
    """Tests for custom id and client workspace modes."""

    def test_resolve_custom_id_prefers_metadata(self) -> None:
        """Should read GOODOT_CUSTOM_PROJECT_ID from project metadata."""
        project = FakeProject("p1", metadata={"GOODOT_CUSTOM_PROJECT_ID": "acme-eu"})
        domain = FakeDomain(clients=[client("c1", "p1")])

        assert resolve_custom_id(domain, project) == "acme-eu"  # type: ignore[arg-type]

    def test_resolve_custom_id_falls_back_to_client(self) -> None:
        """Should use the id of the client owning the project."""
        domain = FakeDomain(clients=[client("c0", "p0"), client("c1", "p1")])

        assert resolve_custom_id(domain, FakeProject("p1")) == "c1"  # type: ignore[arg-type]

    def test_one_project_based_on_custom_id(self, domain: FakeDomain) -> None:
        """Should import records matching the project's custom id."""
        project = FakeProject("p1", metadata={"GOODOT_CUSTOM_PROJECT_ID": "acme-eu"})
        platform = FakePlatform(domain, [project])
        records = [
            UserRecord(login="alice@acme.com", partition_key="acme-eu"),
            UserRecord(login="bob@acme.com", partition_key="acme-us"),
        ]

        UserSyncDispatcher(platform, settings("sync_one_project_based_on_custom_id")).run(records)

        assert [c[1] for c in project.mutations("add")] == [profile("alice@acme.com")]

    def test_multiple_projects_based_on_custom_id(self) -> None:
        """Should route records to the project of their client."""
        domain = FakeDomain(
            users=[domain_user("alice@acme.com")],
            clients=[client("c1", "p1"), client("c2", "p2")],
        )
        p2 = FakeProject("p2")
        platform = FakePlatform(domain, [FakeProject("p1"), p2])

        UserSyncDispatcher(platform, settings("sync_multiple_projects_based_on_custom_id")).run(
            [UserRecord(login="alice@acme.com", partition_key="c2")]
        )

        assert [c[1] for c in p2.mutations("add")] == [profile("alice@acme.com")]

    def test_unknown_client_is_fatal(self, domain: FakeDomain) -> None:
        """Should fail when a key names no client of the data product."""
        platform = FakePlatform(domain)

        with pytest.raises(PartitionError, match='client "c9" does not exist'):
            UserSyncDispatcher(platform, settings("sync_multiple_projects_based_on_custom_id")).run(
                [UserRecord(login="alice@acme.com", partition_key="c9")]
            )

    def test_client_workspaces_prunes_unmentioned_clients(self) -> None:
        """Should clear workspaces of clients absent from the input."""
        domain = FakeDomain(
            users=[domain_user("alice@acme.com")],
            clients=[client("c1", "p1"), client("c2", "p2"), client("c3", None)],
        )
        p1 = FakeProject("p1")
        p2 = FakeProject("p2", members=[member("bob@acme.com", "p2")])
        platform = FakePlatform(domain, [p1, p2])

        events = UserSyncDispatcher(platform, settings("sync_domain_client_workspaces")).run(
            [UserRecord(login="alice@acme.com", partition_key="c1")]
        )

        assert [c[1] for c in p1.mutations("add")] == [profile("alice@acme.com")]
        assert p2.mutations("disable") == [("disable", profile("bob@acme.com"))]
        skipped = [e for e in events if e.type == ResultType.SKIPPED]
        assert [e.subject for e in skipped] == ["c3"]

    def test_client_workspaces_skips_deleted_projects(self) -> None:
        """Should not prune a deleted workspace."""
        domain = FakeDomain(clients=[client("c1", "p1")])
        p1 = FakeProject("p1", members=[member("bob@acme.com", "p1")], state="DELETED")
        platform = FakePlatform(domain, [p1])

        events = UserSyncDispatcher(platform, settings("sync_domain_client_workspaces")).run([])

        assert p1.calls == []
        assert [e.type for e in events] == [ResultType.SKIPPED]

    def test_client_workspaces_respects_do_not_touch(self) -> None:
        """Should not prune when untouched users must be left alone."""
        domain = FakeDomain(clients=[client("c1", "p1")])
        p1 = FakeProject("p1", members=[member("bob@acme.com", "p1")])
        platform = FakePlatform(domain, [p1])

        UserSyncDispatcher(
            platform,
            settings("sync_domain_client_workspaces", do_not_touch_users_that_are_not_mentioned=True),
        ).run([])

        assert p1.calls == []

    def test_client_outside_segments_is_skipped(self) -> None:
        """Should skip clients of other segments and prune only in-segment ones."""
        domain = FakeDomain(
            users=[domain_user("alice@acme.com")],
            clients=[
                client("c1", "p1", segment="/gdc/domains/acme/segments/premium"),
                client("c2", "p2", segment="/gdc/domains/acme/segments/basic"),
            ],
        )
        p1, p2 = FakeProject("p1"), FakeProject("p2", members=[member("bob@acme.com", "p2")])
        platform = FakePlatform(domain, [p1, p2])

        events = UserSyncDispatcher(
            platform, settings("sync_domain_client_workspaces", segments=["premium"])
        ).run([UserRecord(login="alice@acme.com", partition_key="c2")])

        assert p1.calls == []
        assert p2.calls == []
        assert [e.type for e in events] == [ResultType.SKIPPED]
