"""User synchronization - Loading, dispatching and applying user records."""

from usersync.sync.dispatcher import (
    MODE_HANDLERS,
    ModeHandler,
    SyncContext,
    UserSyncDispatcher,
    resolve_custom_id,
)
from usersync.sync.identity import IdentityResolver
from usersync.sync.loader import RowAccessor, dedupe_by_identity, load_users, read_csv_rows
from usersync.sync.pool import PartitionPool
from usersync.sync.results import ResultReport
from usersync.sync.synchronizer import SyncOptions, UserSynchronizer
from usersync.sync.types import (
    ConfigurationError,
    LoadError,
    Partition,
    PartitionError,
    SyncError,
    SyncFailedError,
    SyncMode,
    UserRecord,
)
from usersync.sync.whitelist import Whitelist

__all__ = [
    # Errors
    "ConfigurationError",
    "LoadError",
    "PartitionError",
    "SyncError",
    "SyncFailedError",
    # Types
    "Partition",
    "SyncMode",
    "UserRecord",
    # Loading
    "RowAccessor",
    "dedupe_by_identity",
    "load_users",
    "read_csv_rows",
    # Reconciliation
    "IdentityResolver",
    "SyncOptions",
    "UserSynchronizer",
    "Whitelist",
    # Dispatch
    "MODE_HANDLERS",
    "ModeHandler",
    "PartitionPool",
    "ResultReport",
    "SyncContext",
    "UserSyncDispatcher",
    "resolve_custom_id",
]
