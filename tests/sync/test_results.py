"""Tests for result aggregation."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from usersync.core.types import ResultEvent, ResultType
from usersync.sync.results import ResultReport
from usersync.sync.types import SyncFailedError


class TestResultReport:
    """Tests for ResultReport."""

    def test_counts_per_type(self) -> None:
        report = ResultReport.from_events(
            [ResultEvent.created("a"), ResultEvent.created("b"), ResultEvent.skipped("c")]
        )

        assert report.count(ResultType.CREATED) == 2
        assert report.count(ResultType.SKIPPED) == 1
        assert report.count(ResultType.ERROR) == 0
        assert report.success

    def test_skipped_and_dry_run_are_not_failures(self) -> None:
        report = ResultReport.from_events([ResultEvent.skipped("a"), ResultEvent.dry_run("b", "create")])

        assert report.success
        report.raise_for_failures()

    def test_raises_once_and_logs_first_ten(self) -> None:
        """Should log ten failures and raise one aggregate error."""
        reporter = MagicMock()
        events = [ResultEvent.failed(f"user{i}") for i in range(12)] + [ResultEvent.error("x")]
        report = ResultReport.from_events(events)

        with pytest.raises(SyncFailedError, match="There was an error syncing users") as exc_info:
            report.raise_for_failures(reporter)

        assert len(exc_info.value.failures) == 13
        logged = [c.args[0] for c in reporter.error.call_args_list]
        assert len(logged) == 11
        assert "user0" in logged[1]

    def test_log_summary(self) -> None:
        reporter = MagicMock()

        ResultReport.from_events([ResultEvent.deleted("a")]).log_summary(reporter)

        reporter.info.assert_called_once_with("There were 1 events of type deleted")
