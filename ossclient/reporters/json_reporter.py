"""JSON reporter for structured output.

Writes one document per run, suitable for scripting around the CLI:
- Every operation with its status, request id and details
- Error code and message of failed operations
- A summary block
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ossclient.models import OperationRecord, OperationStatus
from ossclient.reporters.base import Reporter


class JsonReporter(Reporter):
    """JSON reporter for structured output.

    Args:
        output_path: Optional file path to write JSON output
    """

    def __init__(self, output_path: Optional[str] = None):
        self.output_path = output_path

    def on_operation_start(self, operation: str, target: str) -> None:
        """Called when an operation starts. No-op for JSON reporter."""
        pass

    def on_progress(self, operation: str, consumed: int, total: Optional[int]) -> None:
        """Called on transfer progress. No-op for JSON reporter."""
        pass

    def on_operation_complete(self, record: OperationRecord) -> None:
        """Called when an operation completes. No-op - data comes from the run."""
        pass

    def on_run_complete(self, records: list[OperationRecord]) -> dict:
        """Generate the JSON data and write it if an output path is set.

        Args:
            records: Records of every operation in the run

        Returns:
            The generated JSON data as a dictionary
        """
        output = self._generate_output(records)

        if self.output_path:
            self._write_to_file(output)

        return output

    def _generate_output(self, records: list[OperationRecord]) -> dict:
        """Generate the JSON output structure.

        Args:
            records: Records of every operation in the run

        Returns:
            Structured dictionary for JSON output
        """
        timestamp = datetime.now(timezone.utc).isoformat()

        operations = []
        succeeded = 0
        for record in records:
            if record.status == OperationStatus.OK:
                succeeded += 1

            data = {
                "operation": record.operation,
                "target": record.target,
                "status": record.status.value,
                "request_id": record.request_id,
                "duration_seconds": record.duration_seconds,
                "details": record.details,
            }
            if record.status != OperationStatus.OK:
                data["error"] = {
                    "code": record.error_code,
                    "message": record.error_message,
                }
            operations.append(data)

        total = len(records)
        return {
            "timestamp": timestamp,
            "operations": operations,
            "summary": {
                "total": total,
                "succeeded": succeeded,
                "failed": total - succeeded,
                "all_succeeded": succeeded == total and total > 0,
            },
        }

    def _write_to_file(self, output: dict) -> None:
        """Write JSON output to file.

        Args:
            output: The data to write
        """
        path = Path(self.output_path)

        # Create parent directories if needed
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.output_path, "w", encoding="utf-8") as f:
            json.dump(output, f, indent=2, default=str)
