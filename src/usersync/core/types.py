"""Shared types for usersync.

This module defines the result events produced by both the user
synchronizer and the filter reconciler.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ResultType(str, Enum):
    """Outcome of a single reconciliation step."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    FAILED = "failed"
    ERROR = "error"
    SKIPPED = "skipped"
    DRY_RUN = "dry_run"

    @property
    def is_failure(self) -> bool:
        """Whether events of this type make a run unsuccessful."""
        return self in (ResultType.FAILED, ResultType.ERROR)


@dataclass(frozen=True)
class ResultEvent:
    """Result of one create/update/delete intent.

    Attributes:
        type: Outcome of the operation.
        subject: Login, user URI or filter reference the event is about.
        detail: Human-readable message.
        operation: Inferred operation ("create", "delete") for dry-run events.
    """

    type: ResultType
    subject: str | None
    detail: str = ""
    operation: str | None = None

    @classmethod
    def created(cls, subject: str | None, detail: str = "") -> ResultEvent:
        return cls(ResultType.CREATED, subject, detail)

    @classmethod
    def updated(cls, subject: str | None, detail: str = "") -> ResultEvent:
        return cls(ResultType.UPDATED, subject, detail)

    @classmethod
    def deleted(cls, subject: str | None, detail: str = "") -> ResultEvent:
        return cls(ResultType.DELETED, subject, detail)

    @classmethod
    def failed(cls, subject: str | None, detail: str = "") -> ResultEvent:
        return cls(ResultType.FAILED, subject, detail)

    @classmethod
    def error(cls, subject: str | None, detail: str = "") -> ResultEvent:
        return cls(ResultType.ERROR, subject, detail)

    @classmethod
    def skipped(cls, subject: str | None, detail: str = "") -> ResultEvent:
        return cls(ResultType.SKIPPED, subject, detail)

    @classmethod
    def dry_run(cls, subject: str | None, operation: str) -> ResultEvent:
        return cls(ResultType.DRY_RUN, subject, f"would {operation}", operation)

    @property
    def status(self) -> str:
        """String form of the event type."""
        return self.type.value

    def to_dict(self) -> dict[str, str | None]:
        """Plain dictionary form used for logging."""
        data: dict[str, str | None] = {
            "type": self.type.value,
            "subject": self.subject,
            "detail": self.detail,
        }
        if self.operation:
            data["operation"] = self.operation
        return data
