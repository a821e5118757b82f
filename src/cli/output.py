"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all CLI terminal output:
messages, the plan table, unified diffs and run summaries. Supports
verbosity levels and the --no-color flag.
"""

import difflib
from contextlib import contextmanager
from typing import Dict, Iterator, List

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.spinner import Spinner
from rich.table import Table

from src.publisher.models import ExportReport, PlanAction, PlanItem

ACTION_STYLES = {
    PlanAction.CREATE: 'green',
    PlanAction.UPDATE: 'blue',
    PlanAction.RECREATE: 'magenta',
    PlanAction.CONFLICT: 'red',
    PlanAction.SKIP: 'dim',
}


class OutputHandler:
    """Handles all terminal output using Rich library.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.success("Operation completed")
        >>> with handler.spinner("Planning..."):
        ...     pass
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False, console: Console = None):
        """Initialize output handler.

        Args:
            verbosity: Verbosity level (0=summary, 1=info, 2=debug)
            no_color: Disable color output if True
            console: Console to print to (a new stdout console by default)
        """
        self.verbosity = verbosity
        self.console = console or Console(
            no_color=no_color,
            highlight=False,
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {escape(message)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {escape(message)}", style="red")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {escape(message)}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(escape(message))

    def debug(self, message: str) -> None:
        """Display debug message (only if verbosity >= 2)."""
        if self.verbosity >= 2:
            self.console.print(f"[dim]{escape(message)}[/dim]")

    def print(self, message: str) -> None:
        """Display message without formatting."""
        self.console.print(message, markup=False)

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display spinner for single operations.

        Example:
            >>> with handler.spinner("Fetching pages..."):
            ...     pass
        """
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10, transient=True):
            yield

    def print_plan(self, items: List[PlanItem]) -> None:
        """Display the plan as a table, one row per note."""
        table = Table(title="Publish plan", show_lines=False)
        table.add_column("", width=1)
        table.add_column("Note")
        table.add_column("Action")
        table.add_column("Reason")
        table.add_column("Labels")
        table.add_column("Page")

        for item in items:
            action = item.effective_action
            style = ACTION_STYLES[action]
            action_text = action.value
            if item.override_action is not None:
                action_text = f"{action.value} (was {item.action.value})"
            labels = []
            if item.apply_label_changes:
                labels.extend(f"+{label}" for label in item.labels_to_add)
                labels.extend(f"-{label}" for label in item.labels_to_remove)
            table.add_row(
                "x" if item.selected else "",
                escape(item.path),
                f"[{style}]{action_text}[/{style}]",
                escape(item.reason),
                escape(" ".join(labels)),
                escape(item.remote_id or ""),
            )
        self.console.print(table)

    def print_plan_summary(self, counts: Dict[PlanAction, int]) -> None:
        """Display how many notes fall under each action."""
        parts = [
            f"[{ACTION_STYLES[action]}]{action.value}: {counts.get(action, 0)}[/{ACTION_STYLES[action]}]"
            for action in PlanAction
        ]
        self.console.print("Plan: " + ", ".join(parts))

    def print_diff(self, item: PlanItem) -> None:
        """Display a unified diff of an item's old and new content."""
        old = (item.diff_old or '').splitlines()
        new = (item.diff_new or '').splitlines()
        lines = list(difflib.unified_diff(old, new, f"{item.path} (published)", f"{item.path} (local)", lineterm=''))
        if not lines:
            return
        self.console.print(f"\n[bold]{escape(item.path)}[/bold]")
        for line in lines:
            if line.startswith('+') and not line.startswith('+++'):
                self.console.print(f"[green]{escape(line)}[/green]")
            elif line.startswith('-') and not line.startswith('---'):
                self.console.print(f"[red]{escape(line)}[/red]")
            else:
                self.console.print(escape(line))

    def print_report(self, report: ExportReport) -> None:
        """Display the outcome of a publish run with color coding."""
        if report.dry_run:
            self.console.print("\n[bold]Dry Run - Pass 1 decisions:[/bold]")
            for decision in report.decisions:
                parent = f" under {decision.parent_id}" if decision.parent_id else ""
                page = f" (page {decision.page_id})" if decision.page_id else ""
                self.console.print(f"  • {escape(decision.path)}: {decision.action}{parent}{page}")
            if not report.decisions:
                self.console.print("\n[yellow]Nothing to publish[/yellow]")
        else:
            self.console.print("\n[bold]Publish Summary:[/bold]")
            if report.created:
                self.console.print(f"  [green]+[/green] Created: {len(report.created)} page(s)")
            if report.recreated:
                self.console.print(f"  [magenta]↻[/magenta] Recreated: {len(report.recreated)} page(s)")
            if report.updated:
                self.console.print(f"  [blue]↑[/blue] Updated: {len(report.updated)} page(s)")
            if report.unchanged:
                self.console.print(f"  [dim]─[/dim] Unchanged: {len(report.unchanged)} page(s)")

        for warning in report.warnings:
            self.warning(warning)
        for path, reason in report.failures.items():
            self.error(f"{path}: {reason}")

        if report.dry_run:
            return
        if report.failures:
            self.console.print(f"\n[red]Publish completed with {len(report.failures)} failure(s)[/red]")
        elif not (report.created or report.recreated or report.updated):
            self.console.print("\n[green]Everything is up to date.[/green]")
        else:
            self.console.print("\n[green]Publish completed successfully[/green]")
