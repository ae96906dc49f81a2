"""Rich terminal rendering of reconciliation plans and execution reports.

Color scheme
------------
- dim       : NOOP / SKIPPED / NOT_RUN
- yellow    : BUILD
- cyan      : RETRIEVE
- magenta   : PUBLISH
- bold blue : TRIGGER
- green     : SUCCEEDED
- bold red  : FAILED
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from depforge.models.plan import (
    ExecutionOutcome,
    ExecutionReport,
    PlanAction,
    PlanEntry,
    ReconciliationPlan,
)

# ---------------------------------------------------------------------------
# Action / outcome -> Rich markup
# ---------------------------------------------------------------------------

_ACTION_LABELS: dict[PlanAction, str] = {
    PlanAction.NOOP: "[dim]up to date[/dim]",
    PlanAction.BUILD: "[yellow]BUILD[/yellow]",
    PlanAction.RETRIEVE: "[cyan]RETRIEVE[/cyan]",
    PlanAction.PUBLISH: "[magenta]PUBLISH[/magenta]",
    PlanAction.TRIGGER: "[bold blue]TRIGGER[/bold blue]",
}

_OUTCOME_LABELS: dict[ExecutionOutcome, str] = {
    ExecutionOutcome.SUCCEEDED: "[green]SUCCEEDED[/green]",
    ExecutionOutcome.SKIPPED: "[dim]skipped[/dim]",
    ExecutionOutcome.FAILED: "[bold red]FAILED[/bold red]",
    ExecutionOutcome.NOT_RUN: "[dim]not run[/dim]",
}

HASH_WIDTH = 12


def short_hash(value: str | None) -> str:
    """Abbreviate a hash for display; ``-`` for no hash."""
    if value is None:
        return "[dim]-[/dim]"
    return value[:HASH_WIDTH]


def action_label(entry: PlanEntry) -> str:
    label = _ACTION_LABELS[entry.action]
    if entry.publish_after:
        label += " + [magenta]PUBLISH[/magenta]"
    return label


class PlanRenderer:
    """Renders plans and execution reports as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_plan(self, plan: ReconciliationPlan, *, show_noop: bool = True) -> Table:
        table = Table(
            title="Reconciliation Plan",
            show_header=True,
            header_style="bold cyan",
            expand=False,
        )
        table.add_column("Artifact", style="bold")
        table.add_column("Action")
        table.add_column("Local", style="dim")
        table.add_column("Desired")
        table.add_column("Published", style="dim")
        table.add_column("Reason")

        for entry in plan.entries:
            if entry.is_noop and not show_noop:
                continue
            table.add_row(
                entry.name,
                action_label(entry),
                short_hash(entry.hashes.local),
                short_hash(entry.hashes.desired),
                short_hash(entry.hashes.published),
                escape(entry.reason),
            )
        return table

    def print_plan(self, plan: ReconciliationPlan, *, show_noop: bool = True) -> None:
        self.console.print(self.render_plan(plan, show_noop=show_noop))
        actionable = plan.actionable()
        self.console.print(
            f"[bold]{len(actionable)}[/bold] of {len(plan.entries)} artifacts need work"
            + (" [magenta](publishing enabled)[/magenta]" if plan.publish else "")
        )

    def print_progress(self, entry: PlanEntry, outcome: ExecutionOutcome) -> None:
        if outcome == ExecutionOutcome.SKIPPED:
            return
        self.console.print(f"  {_OUTCOME_LABELS[outcome]}  {entry.name} ({entry.action.value})")

    def print_report(self, report: ExecutionReport) -> None:
        if report.ok:
            body = (
                f"[bold green]Reconciliation complete![/bold green]\n\n"
                f"[bold]Actions run:[/bold] {len(report.succeeded())}"
            )
            border = "green"
        else:
            not_run = [
                name for name, outcome in report.outcomes.items()
                if outcome == ExecutionOutcome.NOT_RUN
            ]
            body = "\n".join([
                "[bold red]Reconciliation failed.[/bold red]",
                "",
                f"[bold]Failed:[/bold]  {report.failed_artifact}",
                f"[bold]Error:[/bold]   {escape(report.error or '')}",
                f"[bold]Not run:[/bold] {len(not_run)} artifacts",
            ])
            border = "red"
        self.console.print(
            Panel(body, title="[bold]depforge[/bold]", border_style=border, padding=(1, 2))
        )
