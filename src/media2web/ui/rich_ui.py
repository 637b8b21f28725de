"""
Rich-based progress UI for media2web.

Shows one bar for the whole run plus one bar per file being converted.
Rich's Progress is thread-safe, so this sink can be called directly from
the scheduler's worker threads.
"""

import threading
from typing import Dict, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from media2web.progress import ProgressEvent, ProgressStatus
from media2web.results import ConversionResult
from media2web.ui.legacy_ui import fmt_hms, shorten


class RichProgressUI:
    """Progress sink rendering live bars with Rich."""

    def __init__(self, console: Optional[Console] = None, name_width: int = 40):
        self.console = console or Console()
        self.name_width = name_width
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(bar_width=30),
            TextColumn("[progress.percentage]{task.percentage:>5.1f}%"),
            MofNCompleteColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=True,
        )
        self._overall: Optional[TaskID] = None
        self._tasks: Dict[int, TaskID] = {}
        self._lock = threading.Lock()

    def start(self, total: int, label: str = "Total") -> None:
        """Start the live display."""
        self._overall = self.progress.add_task(f"[bold]{label}[/bold]", total=total)
        self.progress.start()

    def stop(self) -> None:
        """Stop the live display."""
        self.progress.stop()

    def _file_task(self, event: ProgressEvent) -> TaskID:
        with self._lock:
            task_id = self._tasks.get(event.current)
            if task_id is None:
                desc = f"[cyan]{escape(shorten(event.file, self.name_width))}[/cyan]"
                task_id = self.progress.add_task(desc, total=100)
                self._tasks[event.current] = task_id
            return task_id

    def __call__(self, event: ProgressEvent) -> None:
        if event.status == ProgressStatus.CONVERTING:
            task_id = self._file_task(event)
            if event.progress is not None:
                self.progress.update(task_id, completed=event.progress)
            return

        with self._lock:
            task_id = self._tasks.pop(event.current, None)
        if task_id is not None:
            self.progress.remove_task(task_id)
        if self._overall is not None:
            self.progress.advance(self._overall)

        if event.status == ProgressStatus.COMPLETED:
            self.progress.console.print(f"  [green]✓[/green] {escape(event.file)}")
        else:
            self.progress.console.print(f"  [red]✗[/red] {escape(event.file)}: {escape(event.error or '')}")

    def print_summary(self, result: ConversionResult, elapsed: float) -> None:
        """Print a results table and the totals."""
        self.console.print()

        if result.successes:
            table = Table(title="Converted files")
            table.add_column("Input", style="cyan")
            table.add_column("Output")
            table.add_column("Before", justify="right")
            table.add_column("After", justify="right")
            table.add_column("Saved", justify="right", style="green")
            for s in result.successes:
                table.add_row(escape(s.input_name), escape(s.output_name), s.input_size, s.output_size, f"{s.reduction}%")
            self.console.print(table)

        if result.failures:
            table = Table(title="Failed files", title_style="bold red")
            table.add_column("File", style="cyan")
            table.add_column("Error", style="red")
            for f in result.failures:
                table.add_row(escape(f.file), escape(f.error))
            self.console.print(table)

        summary = Table(title="Summary", box=None, show_header=False)
        summary.add_column("Metric", style="bold")
        summary.add_column("Value", justify="right")
        summary.add_row("✓ Converted", f"[green]{len(result.successes)}[/green]")
        summary.add_row("✗ Failed", f"[red]{len(result.failures)}[/red]")
        summary.add_row("⏱ Total time", fmt_hms(elapsed))
        self.console.print(summary)
