"""Canonical record loader.

Turns tabular rows (e.g. from a CSV file) into UserRecord values using a
configurable column mapping. Never talks to the network.
"""

from __future__ import annotations

import csv
import logging
import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

from usersync.core.config import ColumnMapping, SyncSettings
from usersync.core.reporting import NullReporter, SyncReporter
from usersync.sync.types import LoadError, UserRecord

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL = 50_000


def normalize_column(name: str) -> str:
    """Symbol-like form of a column name ("First Name" -> "first_name")."""
    return re.sub(r"[\s\-]+", "_", name.strip().lower())


class RowAccessor:
    """Typed access to the mapped columns of rows sharing one header set.

    Built once per header set: each logical field is bound to the header
    that matches the mapped name, or failing that its normalized form.
    """

    def __init__(self, mapping: ColumnMapping, headers: Iterable[str]) -> None:
        self.headers = tuple(headers)
        by_name: dict[str, str] = {}
        by_normalized: dict[str, str] = {}
        for header in self.headers:
            by_name.setdefault(header.strip().lower(), header)
            by_normalized.setdefault(normalize_column(header), header)

        self._columns: dict[str, str | None] = {}
        for f in fields(mapping):
            name = getattr(mapping, f.name)
            if name is None:
                self._columns[f.name] = None
                continue
            self._columns[f.name] = by_name.get(name.lower()) or by_normalized.get(
                normalize_column(name)
            )

    def has(self, field_name: str) -> bool:
        """Whether the column of ``field_name`` is present."""
        return self._columns.get(field_name) is not None

    def value(self, row: Mapping[str, Any], field_name: str) -> str | None:
        """Stripped cell value, None for a missing column or blank cell."""
        column = self._columns.get(field_name)
        if column is None:
            return None
        raw = row.get(column)
        if raw is None:
            return None
        text = str(raw).strip()
        return text or None

    def values(self, row: Mapping[str, Any], field_name: str) -> list[str] | None:
        """Comma-separated cell as a list.

        Returns:
            None if the column is absent, [] if present but blank.
        """
        if not self.has(field_name):
            return None
        text = self.value(row, field_name)
        if text is None:
            return []
        return [part.strip() for part in text.split(",") if part.strip()]


def _row_to_record(
    row: Mapping[str, Any],
    accessor: RowAccessor,
    settings: SyncSettings,
) -> UserRecord:
    if settings.authentication_modes:
        modes: list[str] | None = list(settings.authentication_modes)
    else:
        modes = accessor.values(row, "authentication_modes")
        if modes is not None:
            modes = [m.upper() for m in modes]

    login = accessor.value(row, "login")
    email = accessor.value(row, "email") or login

    return UserRecord(
        login=login,
        email=email,
        first_name=accessor.value(row, "first_name"),
        last_name=accessor.value(row, "last_name"),
        password=accessor.value(row, "password"),
        role=accessor.value(row, "role"),
        sso_provider=settings.sso_provider or accessor.value(row, "sso_provider"),
        authentication_modes=modes,
        user_group=accessor.values(row, "user_groups"),
        partition_key=accessor.value(row, "partition_column"),
        language=accessor.value(row, "language"),
        company=accessor.value(row, "company"),
        position=accessor.value(row, "position"),
        country=accessor.value(row, "country"),
        phone=accessor.value(row, "phone"),
        ip_whitelist=accessor.values(row, "ip_whitelist"),
    )


def load_users(
    rows: Iterable[Mapping[str, Any]],
    settings: SyncSettings,
    reporter: SyncReporter | None = None,
) -> list[UserRecord]:
    """Convert rows to user records.

    Rows with neither login nor email are dropped.

    Args:
        rows: Rows with header-based access.
        settings: Run settings (column mapping and fixed overrides).
        reporter: Reporting context.

    Returns:
        Usable records in input order.

    Raises:
        LoadError: If reading the rows fails.
    """
    reporter = reporter or NullReporter()
    records: list[UserRecord] = []
    accessor: RowAccessor | None = None
    row_count = 0

    try:
        for row in rows:
            row_count += 1
            if accessor is None or tuple(row.keys()) != accessor.headers:
                accessor = RowAccessor(settings.columns, tuple(row.keys()))
            reporter.debug(f"Processing row: {dict(row)}")
            record = _row_to_record(row, accessor, settings)
            if record.usable:
                records.append(record)
            else:
                logger.debug(f"Dropping row {row_count}: no login or email")
            if row_count % PROGRESS_INTERVAL == 0:
                reporter.info(f"Read {row_count} rows")
    except LoadError:
        raise
    except Exception as e:
        raise LoadError(
            f"There was an error during loading users from csv file. Message: {e}. Error: {e!r}"
        ) from e

    reporter.info(f"Done reading input, total {row_count} rows, {len(records)} usable users")
    return records


def read_csv_rows(path: Path) -> Iterator[dict[str, str]]:
    """Read a CSV file with a header row.

    Header names are lower-cased. Errors are wrapped in LoadError.
    """
    try:
        with open(path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            if reader.fieldnames is None:
                return
            headers = [h.strip().lower() for h in reader.fieldnames]
            reader.fieldnames = headers
            for row in reader:
                yield {k: v for k, v in row.items() if k is not None}
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise LoadError(
            f"There was an error during loading users from csv file. Message: {e}. Error: {e!r}"
        ) from e


def dedupe_by_identity(records: Iterable[UserRecord]) -> list[UserRecord]:
    """Drop records whose login (or email) was already seen; first wins."""
    seen: set[str] = set()
    unique = []
    for record in records:
        key = (record.identity or "").lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique
