"""``gitopsflow run`` — execute one Pipeline Run.

The trigger comes either from explicit options or, with ``--from-env``,
from the GitHub Actions environment of the current job.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from gitopsflow.config import RunnerSettings
from gitopsflow.core.runner import PipelineRunner
from gitopsflow.models.trigger import TriggerEvent, TriggerKind
from gitopsflow.monitor.renderer import ReportRenderer

console = Console()


def run_cmd(
    commit: str = typer.Option(
        None, "--commit", "-c", help="Commit identifier that triggered the run."
    ),
    branch: str = typer.Option(
        None, "--branch", "-b", help="Branch the commit was pushed to (PR head branch)."
    ),
    event: TriggerKind = typer.Option(
        TriggerKind.PUSH, "--event", "-e", help="Trigger event type."
    ),
    base_branch: str = typer.Option(
        None, "--base", help="Target branch of a pull request."
    ),
    from_env: bool = typer.Option(
        False, "--from-env", help="Read the trigger from GITHUB_* variables."
    ),
    source_dir: Path = typer.Option(
        None, "--source", "-s", help="Source tree with the Dockerfile (overrides settings)."
    ),
    descriptor: Path = typer.Option(
        None, "--descriptor", "-d", help="Deployment descriptor path (overrides settings)."
    ),
    settle: float = typer.Option(
        None, "--settle", help="Seconds to wait before probing (overrides settings)."
    ),
) -> None:
    """Build, test, update the descriptor and publish for one trigger.

    Exits 1 if the run fails. Triggers that do not target the integration
    branch are reported and exit 0 without running anything.
    """
    overrides: dict[str, object] = {}
    if source_dir is not None:
        overrides["source_dir"] = source_dir
    if descriptor is not None:
        overrides["descriptor_path"] = descriptor
    if settle is not None:
        overrides["settle_seconds"] = settle
    settings = RunnerSettings(**overrides)

    try:
        if from_env:
            trigger = TriggerEvent.from_github_env()
        else:
            if not commit or not branch:
                console.print("[bold red]--commit and --branch are required without --from-env[/bold red]")
                raise typer.Exit(code=2)
            trigger = TriggerEvent(
                commit_sha=commit, branch=branch, kind=event, base_branch=base_branch
            )
    except (KeyError, ValidationError) as exc:
        console.print(f"[bold red]Invalid trigger:[/bold red] {exc}")
        raise typer.Exit(code=2)

    runner = PipelineRunner(settings)
    if not runner.accepts(trigger):
        console.print(
            f"[yellow]Ignoring {trigger.kind.value} on {trigger.branch!r}: "
            f"not targeting {settings.integration_branch!r}.[/yellow]"
        )
        raise typer.Exit(code=0)

    report = runner.run(trigger)
    console.print()
    ReportRenderer(console=console).print_report(report)

    if not report.succeeded:
        raise typer.Exit(code=1)
