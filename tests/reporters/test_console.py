"""Tests for ConsoleReporter.

Tests the Rich-based console output reporter.
"""

from io import StringIO
from unittest.mock import patch

import pytest
from rich.console import Console

from ossclient.models import OperationRecord, OperationStatus
from ossclient.reporters.base import Reporter
from ossclient.reporters.console import ConsoleReporter, format_size


@pytest.fixture
def output():
    return StringIO()


@pytest.fixture
def reporter(output):
    return ConsoleReporter(console=Console(file=output, width=200))


@pytest.fixture
def quiet_reporter(output):
    return ConsoleReporter(quiet=True, console=Console(file=output, width=200))


def ok_record(**kwargs):
    defaults = dict(operation="put", target="bucket/key", status=OperationStatus.OK)
    defaults.update(kwargs)
    return OperationRecord(**defaults)


def failed_record(**kwargs):
    defaults = dict(
        operation="get",
        target="bucket/missing",
        status=OperationStatus.FAILED,
        request_id="RID-404",
        error_code="NoSuchKey",
        error_message="The specified key does not exist.",
    )
    defaults.update(kwargs)
    return OperationRecord(**defaults)


class TestFormatSize:
    """Tests for byte count formatting."""

    @pytest.mark.parametrize(
        "size, text",
        [
            (None, "-"),
            (0, "0 B"),
            (1023, "1023 B"),
            (1024, "1.0 KiB"),
            (5 * 1024 * 1024, "5.0 MiB"),
            (3 * 1024 ** 3, "3.0 GiB"),
            (2048 * 1024 ** 3, "2048.0 GiB"),
        ],
    )
    def test_format(self, size, text):
        assert format_size(size) == text


class TestConsoleReporterInterface:
    """Tests that ConsoleReporter implements Reporter interface."""

    def test_inherits_from_reporter(self):
        """ConsoleReporter should inherit from Reporter."""
        assert isinstance(ConsoleReporter(), Reporter)


class TestConsoleReporterOperationStart:
    """Tests for on_operation_start method."""

    def test_prints_header_with_target(self, reporter, output):
        reporter.on_operation_start("list-objects", "bucket/logs/")
        assert "list-objects: bucket/logs/" in output.getvalue()

    def test_quiet_mode_prints_nothing(self, quiet_reporter):
        with patch.object(quiet_reporter.console, "print") as mock_print:
            quiet_reporter.on_operation_start("put", "bucket/key")
        mock_print.assert_not_called()


class TestConsoleReporterProgress:
    """Tests for on_progress method."""

    def test_prints_quarter_steps_once(self, reporter, output):
        for consumed in (0, 10, 30, 30, 60, 100):
            reporter.on_progress("put", consumed, 100)

        lines = [line.strip() for line in output.getvalue().splitlines()]
        assert [line.split("%")[0] for line in lines] == ["0", "25", "50", "100"]

    def test_unknown_total_is_ignored(self, reporter, output):
        reporter.on_progress("get", 10, None)
        assert output.getvalue() == ""

    def test_quiet_mode_ignores_progress(self, quiet_reporter, output):
        quiet_reporter.on_progress("put", 50, 100)
        assert output.getvalue() == ""


class TestConsoleReporterOperationComplete:
    """Tests for on_operation_complete method."""

    def test_success_line(self, reporter, output):
        reporter.on_operation_complete(ok_record(request_id="RID-1", duration_seconds=1.5))

        text = output.getvalue()
        assert "[OK] put bucket/key in 1.50s" in text
        assert "RequestId: RID-1" in text

    def test_failure_shows_error(self, reporter, output):
        reporter.on_operation_complete(failed_record())

        text = output.getvalue()
        assert "[FAILED] get bucket/missing" in text
        assert "NoSuchKey: The specified key does not exist." in text
        assert "RequestId: RID-404" in text

    def test_failure_message_with_brackets_is_literal(self, reporter, output):
        reporter.on_operation_complete(failed_record(error_message="bad [bold]value[/bold]"))
        assert "bad [bold]value[/bold]" in output.getvalue()

    def test_failure_shown_in_quiet_mode(self, quiet_reporter, output):
        quiet_reporter.on_operation_complete(failed_record())
        assert "[FAILED]" in output.getvalue()

    def test_bucket_table(self, reporter, output):
        reporter.on_operation_complete(ok_record(
            operation="list-buckets",
            target="*",
            details={"buckets": [
                {"name": "alpha", "location": "oss-cn-hangzhou", "creation_date": "2026-01-01"},
            ]},
        ))

        text = output.getvalue()
        assert "alpha" in text
        assert "oss-cn-hangzhou" in text

    def test_object_table_with_prefixes(self, reporter, output):
        reporter.on_operation_complete(ok_record(
            operation="list-objects",
            target="bucket/",
            details={
                "objects": [{"key": "a.txt", "size": 2048, "last_modified": "2026-01-01"}],
                "prefixes": ["logs/"],
                "truncated": True,
            },
        ))

        text = output.getvalue()
        assert "a.txt" in text
        assert "2.0 KiB" in text
        assert "logs/" in text
        assert "DIR" in text
        assert "Listing truncated" in text

    def test_metadata_table(self, reporter, output):
        reporter.on_operation_complete(ok_record(
            operation="head",
            details={"metadata": {"ETag": "ABC", "meta:author": "me"}},
        ))

        text = output.getvalue()
        assert "ETag" in text
        assert "meta:author" in text

    def test_url_printed_in_quiet_mode(self, quiet_reporter, output):
        url = "http://bucket.oss.example.com/key?OSSAccessKeyId=id&Expires=1&Signature=s%2B"
        quiet_reporter.on_operation_complete(ok_record(operation="sign", details={"url": url}))

        assert output.getvalue().strip() == url

    def test_quiet_mode_hides_success(self, quiet_reporter, output):
        quiet_reporter.on_operation_complete(ok_record())
        assert output.getvalue() == ""


class TestConsoleReporterRunComplete:
    """Tests for on_run_complete method."""

    def test_single_record_has_no_summary(self, reporter, output):
        reporter.on_run_complete([ok_record()])
        assert output.getvalue() == ""

    def test_all_succeeded(self, reporter, output):
        reporter.on_run_complete([ok_record(), ok_record()])
        assert "All 2 operations succeeded" in output.getvalue()

    def test_some_failed(self, reporter, output):
        reporter.on_run_complete([ok_record(), failed_record(), failed_record()])
        assert "2 of 3 operations failed" in output.getvalue()
