"""Reporting context passed to every reconciliation component.

This module provides:
- SyncReporter: Operator log plus structured audit lines
- NullReporter: No-op reporter for tests and library callers
"""

from __future__ import annotations

import logging
from typing import Any


class SyncReporter:
    """Logging context for a single run.

    Operator messages go to ``logger``; audit lines (``key=value`` pairs)
    go to ``audit_logger`` so they can be routed to a separate sink.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        audit_logger: logging.Logger | None = None,
    ) -> None:
        self._logger = logger or logging.getLogger("usersync.run")
        self._audit = audit_logger or logging.getLogger("usersync.audit")

    def debug(self, message: str) -> None:
        self._logger.debug(message)

    def info(self, message: str) -> None:
        self._logger.info(message)

    def warning(self, message: str) -> None:
        self._logger.warning(message)

    def error(self, message: str) -> None:
        self._logger.error(message)

    def audit(self, event: str, **fields: Any) -> None:
        """Emit a structured audit line.

        Example:
            reporter.audit("Synchronizing", mode="sync_project", data_rows=3)
            # -> "Synchronizing in mode=sync_project, data_rows=3"
        """
        if not fields:
            self._audit.info(event)
            return
        pairs = ", ".join(f"{key}={value}" for key, value in fields.items())
        self._audit.info(f"{event} in {pairs}")


class NullReporter(SyncReporter):
    """Reporter that discards everything."""

    def __init__(self) -> None:
        super().__init__()

    def debug(self, message: str) -> None:
        pass

    def info(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass

    def audit(self, event: str, **fields: Any) -> None:
        pass
