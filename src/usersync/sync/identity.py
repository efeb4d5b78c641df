"""Identity resolution of logins to platform users.

A login is looked up in the project roster first and in the owning domain
second. Used by both the user synchronizer and the filter reconciler.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from usersync.client.api import Domain
    from usersync.client.models import DomainUser, ProjectUser

    ResolvedUser = Union[ProjectUser, DomainUser]

logger = logging.getLogger(__name__)


class IdentityResolver:
    """Resolves logins against a project roster with domain fallback."""

    def __init__(
        self,
        project_users: Iterable[ProjectUser] = (),
        domain: Domain | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            project_users: Current project roster.
            domain: Domain consulted for logins missing from the roster.
        """
        self._roster = {u.login.lower(): u for u in project_users}
        self._domain = domain
        self._domain_cache: dict[str, DomainUser | None] = {}

    def in_project(self, login: str) -> ProjectUser | None:
        return self._roster.get(login.lower())

    def in_domain(self, login: str) -> DomainUser | None:
        key = login.lower()
        if self._domain is None:
            return None
        if key not in self._domain_cache:
            self._domain_cache[key] = self._domain.find_user_by_login(login)
            if self._domain_cache[key] is None:
                logger.debug(f"User {login} not found in domain {self._domain.name}")
        return self._domain_cache[key]

    def resolve(self, login: str | None) -> ResolvedUser | None:
        """Find the user of a login.

        Returns:
            Project user, else domain user, else None.
        """
        if not login:
            return None
        return self.in_project(login) or self.in_domain(login)

    def resolve_many(self, logins: Iterable[str]) -> dict[str, ResolvedUser]:
        """Resolve several logins; unresolved ones are left out."""
        resolved = {}
        for login in logins:
            user = self.resolve(login)
            if user is not None:
                resolved[login.lower()] = user
        return resolved

    def missing(self, logins: Iterable[str]) -> list[str]:
        """Logins found neither in the roster nor in the domain."""
        return [login for login in logins if self.resolve(login) is None]
