"""Data permission (MUF) reconciliation."""

from usersync.filters.loader import definitions_from_rows
from usersync.filters.reconciler import FilterReconciler
from usersync.filters.types import (
    DesiredFilter,
    ExistingFilter,
    FilterClause,
    FilterDefinition,
    FilterPlan,
    FilterReconciliation,
    FilterSyncError,
)

__all__ = [
    # Errors
    "FilterSyncError",
    # Types
    "DesiredFilter",
    "ExistingFilter",
    "FilterClause",
    "FilterDefinition",
    "FilterPlan",
    "FilterReconciliation",
    # Reconciliation
    "FilterReconciler",
    "definitions_from_rows",
]
