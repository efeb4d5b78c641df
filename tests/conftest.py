"""Shared fixtures: in-memory stand-ins for the platform collaborators.

The fakes record every mutating call so tests can assert on exactly what
a synchronization would have sent to the server.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pytest

from usersync.client.models import (
    USER_FIELDS,
    ClientRecord,
    DomainUser,
    ProjectUser,
    Role,
    UserGroup,
)


def profile(login: str) -> str:
    """Profile URI of a test login."""
    return f"/gdc/account/profile/{login}"


def domain_user(login: str, **fields: Any) -> DomainUser:
    return DomainUser(login=login, uri=profile(login), **fields)


def make_roles(pid: str) -> list[Role]:
    return [
        Role(uri=f"/gdc/projects/{pid}/roles/2", identifier="adminRole", title="Admin"),
        Role(uri=f"/gdc/projects/{pid}/roles/5", identifier="editorRole", title="Editor"),
        Role(uri=f"/gdc/projects/{pid}/roles/7", identifier="readOnlyUser", title="Viewer"),
    ]


def member(login: str, pid: str, role: str = "readOnlyUser", status: str = "ENABLED") -> ProjectUser:
    role_uri = next(r.uri for r in make_roles(pid) if r.identifier == role)
    return ProjectUser(login=login, uri=profile(login), role_uri=role_uri, status=status)


class FakeDomain:
    """Domain holding accounts and client workspaces in memory."""

    def __init__(
        self,
        name: str = "acme",
        users: Iterable[DomainUser] = (),
        clients: Iterable[ClientRecord] = (),
    ) -> None:
        self.name = name
        self.accounts = {u.login.lower(): u for u in users}
        self.client_records = list(clients)
        self.created: list[str] = []
        self.updated: list[str] = []
        self.deleted: list[str] = []
        self.lookups: list[str] = []

    def list_users(self) -> list[DomainUser]:
        return list(self.accounts.values())

    def find_user_by_login(self, login: str) -> DomainUser | None:
        self.lookups.append(login)
        return self.accounts.get(login.lower())

    def create_user(self, values: dict[str, Any]) -> DomainUser:
        fields = {k: v for k, v in values.items() if k in USER_FIELDS}
        user = DomainUser(login=values["login"], uri=profile(values["login"]), **fields)
        self.accounts[user.login.lower()] = user
        self.created.append(user.login)
        return user

    def update_user(self, user: DomainUser, values: dict[str, Any]) -> None:
        self.updated.append(user.login)

    def delete_user(self, user: DomainUser) -> None:
        self.deleted.append(user.login)

    def clients(self, data_product: str | None = None) -> list[ClientRecord]:
        return list(self.client_records)


class FakeProject:
    """Project roster, roles and groups in memory."""

    def __init__(
        self,
        pid: str,
        members: Iterable[ProjectUser] = (),
        groups: Iterable[UserGroup] = (),
        metadata: dict[str, str] | None = None,
        state: str = "ENABLED",
    ) -> None:
        self.pid = pid
        self.state = state
        self.members = list(members)
        self.groups = list(groups)
        self._metadata = metadata or {}
        self.calls: list[tuple[Any, ...]] = []

    @property
    def uri(self) -> str:
        return f"/gdc/projects/{self.pid}"

    @property
    def deleted(self) -> bool:
        return self.state == "DELETED"

    def metadata(self) -> dict[str, str]:
        return dict(self._metadata)

    def users(self) -> list[ProjectUser]:
        return list(self.members)

    def roles(self) -> list[Role]:
        return make_roles(self.pid)

    def add_user(self, user_uri: str, role_uri: str) -> None:
        self.calls.append(("add", user_uri, role_uri))

    def set_user_role(self, user_uri: str, role_uri: str) -> None:
        self.calls.append(("role", user_uri, role_uri))

    def disable_user(self, user_uri: str) -> None:
        self.calls.append(("disable", user_uri))

    def remove_user(self, user_uri: str) -> None:
        self.calls.append(("remove", user_uri))

    def user_groups(self) -> list[UserGroup]:
        return list(self.groups)

    def create_user_group(self, name: str) -> UserGroup:
        group = UserGroup(uri=f"/gdc/userGroups/{name}", name=name)
        self.groups.append(group)
        self.calls.append(("create_group", name))
        return group

    def add_group_members(self, group: UserGroup, user_uris: list[str]) -> None:
        self.calls.append(("group_add", group.name, tuple(user_uris)))
        group.member_uris.update(user_uris)

    def remove_group_members(self, group: UserGroup, user_uris: list[str]) -> None:
        self.calls.append(("group_remove", group.name, tuple(user_uris)))
        group.member_uris.difference_update(user_uris)

    def mutations(self, kind: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == kind]


class FakePlatform:
    """Platform client returning fake projects and one fake domain."""

    def __init__(
        self,
        domain: FakeDomain,
        projects: Iterable[FakeProject] = (),
        current_login: str = "admin@acme.com",
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self._domain = domain
        self._projects = {p.pid: p for p in projects}
        self._errors = errors or {}
        self.current_login = current_login
        self.project_lookups: list[str | None] = []

    def projects(self, project_id: str | None) -> FakeProject | None:
        self.project_lookups.append(project_id)
        if not project_id:
            return None
        pid = project_id.rstrip("/").rsplit("/", 1)[-1]
        if pid in self._errors:
            raise self._errors[pid]
        return self._projects.get(pid)

    def domain(self, name: str) -> FakeDomain:
        return self._domain


@pytest.fixture
def domain() -> FakeDomain:
    return FakeDomain(
        users=[
            domain_user("alice@acme.com", first_name="Alice"),
            domain_user("bob@acme.com", first_name="Bob"),
            domain_user("carol@acme.com", first_name="Carol"),
            domain_user("admin@acme.com"),
        ]
    )


@pytest.fixture
def project() -> FakeProject:
    return FakeProject("p1", members=[member("admin@acme.com", "p1", role="adminRole")])


@pytest.fixture
def platform(domain: FakeDomain, project: FakeProject) -> FakePlatform:
    return FakePlatform(domain, [project])

