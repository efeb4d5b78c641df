"""Filter definitions from tabular rows.

Each row names a login and, in one column per label, a value that user may
see. Rows of the same login are merged into one definition.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from usersync.filters.types import FilterClause, FilterDefinition

logger = logging.getLogger(__name__)


def definitions_from_rows(
    rows: Iterable[Mapping[str, Any]],
    login_column: str,
    label_columns: Mapping[str, str | FilterClause],
) -> list[FilterDefinition]:
    """Group rows by login into filter definitions.

    Args:
        rows: Rows with header-based access.
        login_column: Column holding the owner login.
        label_columns: Column name to label identifier, or to a clause
            template carrying the label and its ``over``/``to`` scope.

    Returns:
        One definition per login, in first-seen order. A label whose cells
        are all blank for a login yields a clause without values.
    """
    templates = {
        column.lower(): target if isinstance(target, FilterClause) else FilterClause(label=target)
        for column, target in label_columns.items()
    }
    collected: dict[str, dict[str, list[str]]] = {}
    logins: dict[str, str] = {}

    for number, row in enumerate(rows, start=1):
        cells = {str(k).strip().lower(): v for k, v in row.items() if k is not None}
        login = str(cells.get(login_column.lower()) or "").strip()
        if not login:
            logger.debug(f"Skipping filter row {number}: no login")
            continue
        key = login.lower()
        logins.setdefault(key, login)
        values = collected.setdefault(key, {column: [] for column in templates})
        for column in templates:
            cell = cells.get(column)
            if cell is None:
                continue
            text = str(cell).strip()
            if text and text not in values[column]:
                values[column].append(text)

    return [
        FilterDefinition(
            login=logins[key],
            clauses=[
                replace(templates[column], values=tuple(found))
                for column, found in per_column.items()
            ],
        )
        for key, per_column in collected.items()
    ]
