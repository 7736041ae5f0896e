"""Console reporter using Rich library for formatted CLI output.

Provides colorful, formatted output for each command:
- A header line naming the operation and its target
- Listing and metadata tables
- Error details with the service request id
"""

from typing import Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.rule import Rule
from rich.table import Table

from ossclient.models import OperationRecord, OperationStatus
from ossclient.reporters.base import Reporter


def format_size(size: Optional[int]) -> str:
    """Human readable byte count."""
    if size is None:
        return "-"
    value = float(size)
    for unit in ("B", "KiB", "MiB", "GiB"):
        if value < 1024 or unit == "GiB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return str(size)


class ConsoleReporter(Reporter):
    """Rich-based console reporter for CLI output.

    Args:
        quiet: If True, print only failures and the values a command
               exists to produce (such as a signed URL).
        console: Console to print to; a new one is created if omitted.
    """

    def __init__(self, quiet: bool = False, console: Optional[Console] = None):
        # Use legacy_windows=True for ASCII-safe output on Windows consoles
        self.console = console or Console(legacy_windows=True)
        self.quiet = quiet
        self._last_percent: dict[str, int] = {}

    def on_operation_start(self, operation: str, target: str) -> None:
        if self.quiet:
            return
        self.console.print(
            Rule(f"[bold cyan]{operation}: {target}[/bold cyan]", style="cyan", characters="-")
        )

    def on_progress(self, operation: str, consumed: int, total: Optional[int]) -> None:
        """Print progress in 25% steps when the total is known."""
        if self.quiet or not total:
            return
        percent = consumed * 100 // total
        step = percent - percent % 25
        if step <= self._last_percent.get(operation, -1):
            return
        self._last_percent[operation] = step
        self.console.print(f"  [dim]{step}% ({format_size(consumed)} of {format_size(total)})[/dim]")

    def on_operation_complete(self, record: OperationRecord) -> None:
        if record.status != OperationStatus.OK:
            self._print_failure(record)
            return

        if "url" in record.details:
            # The URL is the whole point of sign, so it ignores quiet mode
            self.console.print(record.details["url"], soft_wrap=True, markup=False)

        if self.quiet:
            return

        if "buckets" in record.details:
            self.console.print(self._bucket_table(record.details["buckets"]))
        if "objects" in record.details:
            self.console.print(
                self._object_table(record.details["objects"], record.details.get("prefixes", []))
            )
            if record.details.get("truncated"):
                self.console.print("[yellow]Listing truncated; use --marker to continue.[/yellow]")
        if "metadata" in record.details:
            self.console.print(self._metadata_table(record.details["metadata"]))

        duration = ""
        if record.duration_seconds > 0:
            duration = f" in {record.duration_seconds:.2f}s"
        self.console.print(f"[green][OK][/green] {record.operation} {record.target}{duration}")
        if record.request_id:
            self.console.print(f"     [dim]RequestId: {record.request_id}[/dim]")

    def on_run_complete(self, records: list[OperationRecord]) -> None:
        if self.quiet or len(records) < 2:
            return
        failed = sum(1 for r in records if r.status != OperationStatus.OK)
        if failed:
            self.console.print(f"[bold red]{failed} of {len(records)} operations failed[/bold red]")
        else:
            self.console.print(f"[bold green]All {len(records)} operations succeeded[/bold green]")

    def _print_failure(self, record: OperationRecord) -> None:
        self.console.print(f"[red][FAILED][/red] {record.operation} {record.target}")
        self.console.print(f"     [dim]{escape(f'{record.error_code}: {record.error_message}')}[/dim]")
        if record.request_id:
            self.console.print(f"     [dim]RequestId: {record.request_id}[/dim]")

    def _bucket_table(self, buckets: list[dict]) -> Table:
        table = Table(show_header=True, header_style="bold magenta", border_style="dim", box=box.ASCII)
        table.add_column("Bucket", style="cyan", no_wrap=True)
        table.add_column("Location", no_wrap=True)
        table.add_column("Created", no_wrap=True)
        for bucket in buckets:
            table.add_row(bucket["name"], bucket.get("location", ""), bucket.get("creation_date", ""))
        return table

    def _object_table(self, objects: list[dict], prefixes: list[str]) -> Table:
        table = Table(show_header=True, header_style="bold magenta", border_style="dim", box=box.ASCII)
        table.add_column("Key", style="cyan")
        table.add_column("Size", justify="right", no_wrap=True)
        table.add_column("Last Modified", no_wrap=True)
        for prefix in prefixes:
            table.add_row(prefix, "[dim]DIR[/dim]", "")
        for obj in objects:
            table.add_row(obj["key"], format_size(obj.get("size")), obj.get("last_modified", ""))
        return table

    def _metadata_table(self, metadata: dict) -> Table:
        table = Table(show_header=False, border_style="dim", box=box.ASCII)
        table.add_column("Header", style="cyan", no_wrap=True)
        table.add_column("Value")
        for name, value in metadata.items():
            table.add_row(name, str(value))
        return table
