"""``gitopsflow bump TAG`` — rewrite the descriptor's image tag locally.

Does not commit or push; useful for previewing what a run would change.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from gitopsflow.config import RunnerSettings
from gitopsflow.core.descriptor import DeploymentDescriptor
from gitopsflow.core.errors import DescriptorUpdateError

console = Console()


def bump_cmd(
    tag: str = typer.Argument(..., help="New image tag, usually a commit id."),
    descriptor: Path = typer.Option(
        None, "--descriptor", "-d", help="Descriptor path (defaults to settings)."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show the change without writing it."
    ),
) -> None:
    """Point the descriptor's image line at TAG."""
    settings = RunnerSettings()
    path = descriptor or Path(settings.source_dir) / settings.descriptor_path
    doc = DeploymentDescriptor(path, settings.registry, settings.image_name)

    try:
        snapshot = doc.snapshot()
        if dry_run:
            rewrite = doc.render(snapshot, tag)
        else:
            rewrite = doc.apply(tag, snapshot.revision)
    except DescriptorUpdateError as exc:
        console.print(f"[bold red]Descriptor update failed:[/bold red] {exc}")
        raise typer.Exit(code=1)

    if not rewrite.changed:
        console.print(f"[dim]{path} already references {tag}.[/dim]")
        return

    lines = rewrite.text.splitlines()
    for lineno in rewrite.changed_lines:
        console.print(
            f"[green]{path}:{lineno}[/green] {escape(lines[lineno - 1].strip())}",
            highlight=False,
        )
    if dry_run:
        console.print("[dim](dry run, nothing written)[/dim]")
