"""Run progress reporting and summary display."""

from __future__ import annotations

from typing import Optional

from rich.console import Console
from rich.table import Table

from rgreaper.models.candidate import TraceEntry, TraceOutcome
from rgreaper.models.deletion_operation import DeletionOperation, OperationStatus
from rgreaper.models.deletion_record import DeletionRecord, DeletionStatus
from rgreaper.models.metadata import AccountContext

TRACE_STYLES = {
    TraceOutcome.PINNED: "cyan",
    TraceOutcome.EXPIRED: "bold red",
    TraceOutcome.ALIVE: "green",
    TraceOutcome.COVERED: "dim",
    TraceOutcome.ERROR: "bold yellow",
}

RECORD_STYLES = {
    DeletionStatus.SUCCEEDED: "green",
    DeletionStatus.FAILED: "bold red",
    DeletionStatus.DRY_RUN: "yellow",
}

STATUS_STYLES = {
    OperationStatus.PLANNED: "yellow",
    OperationStatus.COMPLETED: "green",
    OperationStatus.PARTIAL: "bold yellow",
    OperationStatus.FAILED: "bold red",
}


class RunReporter:
    """Print section banners, selection traces and deletion outcomes."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize run reporter.

        Args:
            console: Rich console instance (creates new one if not provided)
        """
        self.console = console or Console()

    def section(self, title: str) -> None:
        self.console.print()
        self.console.rule(f"[bold cyan]{title}[/bold cyan]")

    def traces(self, entries: list[TraceEntry]) -> None:
        if not entries:
            self.console.print("  (nothing matched)", style="dim")
            return

        for entry in entries:
            if entry.warning:
                self._line(f"  ⚠ {entry.identity}: {entry.warning}", "yellow")
            self._line(f"  {entry.format()}", TRACE_STYLES[entry.outcome])

    def record(self, record: DeletionRecord) -> None:
        line = record.message
        if record.status == DeletionStatus.FAILED:
            line = f"{line}: {record.error_message}"
        self._line(f"  {line}", RECORD_STYLES[record.status])

    def account_error(self, account: AccountContext, error: str) -> None:
        self._line(f"✗ Skipping subscription {account.label}: {error}", "bold red")

    def summary(self, operations: list[DeletionOperation]) -> None:
        """Display a per-subscription summary table."""
        table = Table(title="Summary", show_header=True, header_style="bold magenta")
        table.add_column("Subscription", style="cyan")
        table.add_column("Status")
        table.add_column("Group candidates", justify="right")
        table.add_column("Resource candidates", justify="right")
        table.add_column("Deleted", justify="right", style="green")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("Dry-run", justify="right", style="yellow")

        for operation in operations:
            status = operation.status
            table.add_row(
                operation.account.label,
                f"[{STATUS_STYLES[status]}]{status.value}[/{STATUS_STYLES[status]}]",
                str(len(operation.group_candidates)),
                str(len(operation.resource_candidates)),
                str(operation.succeeded_count),
                str(operation.failed_count),
                str(operation.dry_run_count),
            )

        self.console.print()
        self.console.print(table)
        self.console.print()

    def _line(self, text: str, style: str) -> None:
        # Audit lines are never wrapped or cropped
        self.console.print(text, style=style, markup=False, soft_wrap=True)
