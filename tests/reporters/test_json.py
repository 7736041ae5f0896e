"""Tests for JsonReporter.

Tests the JSON output reporter used for scripting around the CLI.
"""

import json
from datetime import datetime

from ossclient.models import OperationRecord, OperationStatus
from ossclient.reporters.base import Reporter
from ossclient.reporters.json_reporter import JsonReporter


def make_records():
    return [
        OperationRecord(
            operation="put",
            target="bucket/a.txt",
            status=OperationStatus.OK,
            request_id="RID-1",
            duration_seconds=0.25,
            details={"etag": "E1", "size": 3},
        ),
        OperationRecord(
            operation="get",
            target="bucket/missing",
            status=OperationStatus.FAILED,
            request_id="RID-2",
            error_code="NoSuchKey",
            error_message="The specified key does not exist.",
        ),
    ]


class TestJsonReporterInterface:
    """Tests that JsonReporter implements Reporter interface."""

    def test_inherits_from_reporter(self):
        """JsonReporter should inherit from Reporter."""
        assert isinstance(JsonReporter(), Reporter)

    def test_streaming_callbacks_are_noops(self):
        reporter = JsonReporter()
        reporter.on_operation_start("put", "bucket/key")
        reporter.on_progress("put", 1, 2)
        reporter.on_operation_complete(make_records()[0])


class TestJsonReporterOutput:
    """Tests for the generated document."""

    def test_operations_listed(self):
        output = JsonReporter().on_run_complete(make_records())

        ok, failed = output["operations"]
        assert ok == {
            "operation": "put",
            "target": "bucket/a.txt",
            "status": "ok",
            "request_id": "RID-1",
            "duration_seconds": 0.25,
            "details": {"etag": "E1", "size": 3},
        }
        assert failed["status"] == "failed"
        assert failed["error"] == {
            "code": "NoSuchKey",
            "message": "The specified key does not exist.",
        }

    def test_summary(self):
        output = JsonReporter().on_run_complete(make_records())

        assert output["summary"] == {
            "total": 2,
            "succeeded": 1,
            "failed": 1,
            "all_succeeded": False,
        }

    def test_empty_run_is_not_success(self):
        output = JsonReporter().on_run_complete([])
        assert output["summary"]["all_succeeded"] is False

    def test_all_succeeded(self):
        output = JsonReporter().on_run_complete(make_records()[:1])
        assert output["summary"]["all_succeeded"] is True

    def test_timestamp_is_iso_format(self):
        output = JsonReporter().on_run_complete([])
        datetime.fromisoformat(output["timestamp"])


class TestJsonReporterFileOutput:
    """Tests for writing the document to disk."""

    def test_writes_to_file(self, tmp_path):
        path = tmp_path / "nested" / "results.json"
        reporter = JsonReporter(output_path=str(path))

        output = reporter.on_run_complete(make_records())

        assert json.loads(path.read_text(encoding="utf-8")) == output

    def test_no_file_without_path(self, tmp_path):
        JsonReporter().on_run_complete(make_records())
        assert list(tmp_path.iterdir()) == []

    def test_non_json_details_are_stringified(self, tmp_path):
        path = tmp_path / "results.json"
        record = make_records()[0]
        record.details = {"when": datetime(2026, 1, 1)}

        JsonReporter(output_path=str(path)).on_run_complete([record])

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["operations"][0]["details"]["when"].startswith("2026-01-01")
