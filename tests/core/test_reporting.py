"""Tests for the reporting context and result events."""

from __future__ import annotations

import logging

import pytest

from usersync.core.reporting import NullReporter, SyncReporter
from usersync.core.types import ResultEvent, ResultType


class TestSyncReporter:
    """Tests for SyncReporter."""

    def test_audit_formats_key_value_pairs(self, caplog: pytest.LogCaptureFixture) -> None:
        """Should write "event in k=v, ..." to the audit logger."""
        with caplog.at_level(logging.INFO, logger="usersync.audit"):
            SyncReporter().audit("Synchronizing", mode="sync_project", data_rows=3)

        assert caplog.records[-1].name == "usersync.audit"
        assert caplog.records[-1].getMessage() == "Synchronizing in mode=sync_project, data_rows=3"

    def test_operator_messages(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="usersync.run"):
            reporter = SyncReporter()
            reporter.info("hello")
            reporter.warning("careful")

        assert [(r.levelname, r.getMessage()) for r in caplog.records] == [
            ("INFO", "hello"),
            ("WARNING", "careful"),
        ]

    def test_null_reporter_is_silent(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG):
            reporter = NullReporter()
            reporter.error("nothing")
            reporter.audit("nothing", a=1)

        assert caplog.records == []


class TestResultEvent:
    """Tests for ResultEvent constructors."""

    def test_dry_run(self) -> None:
        event = ResultEvent.dry_run("ann", "create")

        assert event.status == "dry_run"
        assert event.operation == "create"
        assert event.to_dict() == {
            "type": "dry_run",
            "subject": "ann",
            "detail": "would create",
            "operation": "create",
        }

    def test_failure_types(self) -> None:
        assert ResultType.FAILED.is_failure
        assert ResultType.ERROR.is_failure
        assert not ResultType.SKIPPED.is_failure
