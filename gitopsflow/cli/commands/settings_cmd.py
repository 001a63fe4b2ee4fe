"""``gitopsflow settings`` — show the effective runner settings."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from gitopsflow.config import RunnerSettings

console = Console()


def settings_cmd() -> None:
    """Print every setting after environment and .env overrides."""
    settings = RunnerSettings()
    table = Table(title="gitopsflow settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))
    table.add_row("[dim]probe_url[/dim]", settings.probe_url)

    console.print(table)
