"""Logins exempt from removal and pruning."""

from __future__ import annotations

import re
from collections.abc import Iterable


class Whitelist:
    """Literal logins, login patterns and the running account.

    Patterns are compiled once per run.
    """

    def __init__(
        self,
        literals: Iterable[str] = (),
        patterns: Iterable[str] = (),
        current_login: str | None = None,
    ) -> None:
        self._literals = {login.lower() for login in literals}
        if current_login:
            self._literals.add(current_login.lower())
        self._patterns = [re.compile(p) for p in patterns]

    def is_whitelisted(self, login: str | None) -> bool:
        if not login:
            return False
        if login.lower() in self._literals:
            return True
        return any(p.search(login) for p in self._patterns)

    def __contains__(self, login: object) -> bool:
        return isinstance(login, str) and self.is_whitelisted(login)
