"""Aggregation of result events into a run outcome."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field

from usersync.core.reporting import NullReporter, SyncReporter
from usersync.core.types import ResultEvent, ResultType
from usersync.sync.types import SyncFailedError

MAX_REPORTED_FAILURES = 10


@dataclass
class ResultReport:
    """Merged events of a run with per-type counts.

    Attributes:
        events: All events in the order they were produced.
        counts: Number of events per result type.
    """

    events: list[ResultEvent] = field(default_factory=list)
    counts: Counter[ResultType] = field(default_factory=Counter)

    @classmethod
    def from_events(cls, events: Iterable[ResultEvent]) -> ResultReport:
        merged = list(events)
        return cls(events=merged, counts=Counter(e.type for e in merged))

    @property
    def failures(self) -> list[ResultEvent]:
        return [e for e in self.events if e.type.is_failure]

    @property
    def success(self) -> bool:
        """True when no event is ``failed`` or ``error``."""
        return self.counts[ResultType.FAILED] + self.counts[ResultType.ERROR] == 0

    def count(self, result_type: ResultType) -> int:
        return self.counts[result_type]

    def log_summary(self, reporter: SyncReporter | None = None) -> None:
        reporter = reporter or NullReporter()
        for result_type in ResultType:
            if self.counts[result_type]:
                reporter.info(f"There were {self.counts[result_type]} events of type {result_type.value}")

    def raise_for_failures(self, reporter: SyncReporter | None = None) -> None:
        """Raise one aggregate error if any event failed.

        The first ten failing events are logged before raising.

        Raises:
            SyncFailedError: If the run was not successful.
        """
        if self.success:
            return
        reporter = reporter or NullReporter()
        failures = self.failures
        reporter.error(f"Printing {min(len(failures), MAX_REPORTED_FAILURES)} first errors")
        for event in failures[:MAX_REPORTED_FAILURES]:
            reporter.error(str(event.to_dict()))
        raise SyncFailedError("There was an error syncing users", failures)
