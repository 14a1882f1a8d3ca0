"""Console presentation of an orchestration run.

ConsolePresenter is an observer: it renders run and job events with ``rich``
progress bars, or as plain lines in silent mode, and prints the final
summary. It never influences the run.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from indexrunner.kernel.orchestration.events import (
    Event,
    JobCancelled,
    JobCompleted,
    JobFailed,
    JobProgressed,
    JobStarted,
    RunFinished,
    RunStarted,
)
from indexrunner.kernel.orchestration.models import JobOutcome

if TYPE_CHECKING:
    from collections.abc import Sequence

    from indexrunner.kernel.exceptions import ConfigLoadError
    from indexrunner.kernel.orchestration.models import OrchestrationResult
    from indexrunner.kernel.orchestration.orchestrator import JobOrchestrator
    from indexrunner.kernel.ports.observer_manager import ObserverManager

__all__ = ["ConsolePresenter"]

OUTCOME_STYLES = {
    JobOutcome.SUCCEEDED: "[green]✓ succeeded[/green]",
    JobOutcome.FAILED: "[red]✗ failed[/red]",
    JobOutcome.CANCELLED: "[yellow]⊘ cancelled[/yellow]",
}


def _short_name(job_id: str) -> str:
    return escape(Path(job_id).name or job_id)


class ConsolePresenter:
    """Renders orchestration events on a rich console.

    Examples
    --------
    Example usage::

        presenter = ConsolePresenter(Console(), silent=False)
        presenter.attach(observer_manager, orchestrator)
        result = await orchestrator.start(jobs)
        presenter.print_summary(result, load_errors)
    """

    def __init__(self, console: Console, *, silent: bool = False) -> None:
        self.console = console
        self.silent = silent
        self._orchestrator: JobOrchestrator | None = None
        self._progress: Progress | None = None
        self._overall: TaskID | None = None
        self._job_tasks: dict[str, TaskID] = {}

    def attach(self, observer_manager: ObserverManager, orchestrator: JobOrchestrator) -> str:
        """Register on ``observer_manager``; ``orchestrator`` supplies the aggregate fraction."""
        self._orchestrator = orchestrator
        return observer_manager.register(self, observer_id="console-presenter")

    async def handle(self, event: Event) -> None:
        match event:
            case RunStarted():
                self._on_run_started(event)
            case JobStarted():
                self._on_job_started(event)
            case JobProgressed():
                self._on_job_progressed(event)
            case JobCompleted() | JobFailed() | JobCancelled():
                self._on_job_finished(event)
            case RunFinished():
                self._stop()

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_run_started(self, event: RunStarted) -> None:
        if self.silent:
            self.console.print(
                f"Building {event.jobs_total} index(es) with {event.max_workers} worker(s)"
            )
            return
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        )
        self._overall = self._progress.add_task("[bold cyan]All indexes", total=1.0)
        self._progress.start()

    def _on_job_started(self, event: JobStarted) -> None:
        name = _short_name(event.job_id)
        if self.silent:
            self.console.print(f"Started {name}")
            return
        if self._progress is None:
            return
        total = float(event.files_expected) if event.files_expected else None
        self._job_tasks[event.job_id] = self._progress.add_task(f"[cyan]{name}", total=total)

    def _on_job_progressed(self, event: JobProgressed) -> None:
        if self.silent:
            if event.message:
                style = "red" if event.is_error else "dim"
                self.console.print(f"[{style}]{escape(event.message)}[/{style}]", highlight=False)
            return
        if self._progress is None:
            return
        if event.is_error and event.message:
            self._progress.console.print(f"[red]{escape(event.message)}[/red]", highlight=False)
        task_id = self._job_tasks.get(event.job_id)
        if task_id is not None:
            self._progress.update(task_id, completed=event.files_processed)
        self._refresh_overall()

    def _on_job_finished(self, event: JobCompleted | JobFailed | JobCancelled) -> None:
        name = _short_name(event.job_id)
        match event:
            case JobCompleted():
                line = f"[green]✓[/green] {name} ({event.duration_ms / 1000:.2f}s)"
            case JobFailed():
                line = f"[red]✗[/red] {name}: {escape(str(event.error))}"
            case _:
                line = f"[yellow]⊘[/yellow] {name} cancelled"

        if self._progress is None:
            self.console.print(line)
            return
        task_id = self._job_tasks.pop(event.job_id, None)
        if task_id is not None:
            self._progress.remove_task(task_id)
        self._progress.console.print(line)
        self._refresh_overall()

    def _refresh_overall(self) -> None:
        if self._progress is None or self._overall is None or self._orchestrator is None:
            return
        fraction = self._orchestrator.progress_fraction
        if fraction is None:
            self._progress.update(self._overall, total=None)
        else:
            self._progress.update(self._overall, total=1.0, completed=fraction)

    def _stop(self) -> None:
        if self._progress is None:
            return
        if self._overall is not None:
            self._progress.update(self._overall, total=1.0, completed=1.0)
        self._progress.stop()
        self._progress = None
        self._job_tasks.clear()

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    def print_load_errors(self, errors: Sequence[ConfigLoadError]) -> None:
        for error in errors:
            self.console.print(
                f"[red]✗ {escape(error.path)}:[/red] {escape(error.reason)}", highlight=False
            )

    def print_summary(
        self, result: OrchestrationResult, load_errors: Sequence[ConfigLoadError] = ()
    ) -> None:
        """Print one line per job and the collected errors."""
        if self.silent:
            for job in result.results:
                self.console.print(f"{escape(job.job_id)}: {job.outcome}")
        else:
            table = Table(title="Index build results", show_header=True, header_style="bold")
            table.add_column("Configuration", style="cyan")
            table.add_column("Outcome")
            table.add_column("Files", justify="right")
            table.add_column("Index size", justify="right")
            table.add_column("Time", justify="right")
            for job in result.results:
                size = f"{job.index_size_bytes:,} B" if job.index_size_bytes is not None else "-"
                table.add_row(
                    _short_name(job.job_id),
                    OUTCOME_STYLES[job.outcome],
                    str(job.files_processed),
                    size,
                    f"{job.duration_ms / 1000:.2f}s",
                )
            self.console.print(table)

        diagnostics = [(job.job_id, line) for job in result.results for line in job.diagnostics]
        if diagnostics:
            count = len(diagnostics)
            self.console.print(f"\n[yellow]{count} file(s) could not be indexed:[/yellow]")
            for job_id, line in diagnostics:
                self.console.print(f"  [yellow]⚠[/yellow] {_short_name(job_id)}: {escape(line)}")

        failures = len(result.errors) + len(load_errors)
        if failures:
            self.console.print(f"\n[red]Errors ({failures}):[/red]")
            for error in load_errors:
                self.console.print(f"  [red]✗[/red] {escape(str(error))}", highlight=False)
            for job_id, error in result.errors:
                self.console.print(f"  [red]✗[/red] {_short_name(job_id)}: {escape(str(error))}")
        elif result.all_succeeded:
            self.console.print(f"\n[green]✓ {len(result)} index(es) built[/green]")

    def wait_for_dismissal(self, auto_close: bool) -> None:
        """Keep the window open until the user presses Enter, unless auto-closing."""
        if auto_close or self.silent or not sys.stdin.isatty():
            return
        try:
            self.console.input("[dim]Press Enter to close[/dim]")
        except EOFError:
            return
