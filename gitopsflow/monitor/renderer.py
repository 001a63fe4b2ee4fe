"""Rich terminal renderer for Pipeline Run reports.

Color scheme
------------
- green     : SUCCEEDED
- red       : FAILED
- yellow    : WARNING
- dim       : SKIPPED
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from gitopsflow.models.run import RunReport, RunState, StepStatus

_STATUS_ICONS: dict[StepStatus, str] = {
    StepStatus.SUCCEEDED: "[green]SUCCEEDED[/green]",
    StepStatus.FAILED: "[bold red]FAILED[/bold red]",
    StepStatus.WARNING: "[yellow]WARNING[/yellow]",
    StepStatus.SKIPPED: "[dim]SKIPPED[/dim]",
}

_RUN_STYLES: dict[RunState, str] = {
    RunState.SUCCEEDED: "green",
    RunState.FAILED: "red",
}


class ReportRenderer:
    """Renders ``RunReport`` as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_report(self, report: RunReport) -> Panel:
        table = Table(show_header=True, header_style="bold", expand=True)
        table.add_column("#", justify="right", width=3)
        table.add_column("Step", style="cyan", min_width=18)
        table.add_column("Status", justify="center", min_width=10)
        table.add_column("Detail", overflow="fold")

        for idx, outcome in enumerate(report.steps, start=1):
            detail = escape(outcome.detail)
            if outcome.error_kind:
                detail = f"[bold]{outcome.error_kind}[/bold]: {detail}"
            table.add_row(
                str(idx),
                outcome.step.value,
                _STATUS_ICONS.get(outcome.status, outcome.status.value),
                detail,
            )

        trigger = report.trigger
        summary_parts = [
            f"[bold]Run:[/bold] {report.run_id}",
            f"[bold]Commit:[/bold] {trigger.short_sha}",
            f"[bold]Branch:[/bold] {trigger.branch}",
            f"[bold]Trigger:[/bold] {trigger.kind.value} ({report.trigger_class.value})",
        ]
        if report.descriptor_tag:
            summary_parts.append(f"[bold]Descriptor:[/bold] {report.descriptor_tag}")
        summary = "  |  ".join(summary_parts)

        parts = [table, Text(""), Text.from_markup(summary)]
        if report.error_kind:
            parts.append(
                Text.from_markup(
                    f"[bold red]{report.error_kind}:[/bold red] "
                    f"{escape(report.error_message or '')}"
                )
            )

        style = _RUN_STYLES.get(report.state, "cyan")
        return Panel(
            Group(*parts),
            title=f"[bold]Pipeline Run: {report.state.value.upper()}[/bold]",
            border_style=style,
            padding=(1, 2),
        )

    def print_report(self, report: RunReport) -> None:
        self.console.print(self.render_report(report))
