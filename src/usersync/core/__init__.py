"""Core module - Shared configuration, result types and reporting."""

from usersync.core.config import ColumnMapping, ServerConfig, SyncSettings, to_boolean
from usersync.core.reporting import NullReporter, SyncReporter
from usersync.core.types import ResultEvent, ResultType

__all__ = [
    # Config
    "ColumnMapping",
    "ServerConfig",
    "SyncSettings",
    "to_boolean",
    # Reporting
    "NullReporter",
    "SyncReporter",
    # Types
    "ResultEvent",
    "ResultType",
]
