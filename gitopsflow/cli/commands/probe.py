"""``gitopsflow probe`` — run the health check against a URL."""

from __future__ import annotations

import typer
from rich.console import Console

from gitopsflow.backends.health import HttpHealthCheck, PollingHealthCheck
from gitopsflow.config import RunnerSettings

console = Console()


def probe_cmd(
    url: str = typer.Option(None, "--url", "-u", help="URL to probe (defaults to settings)."),
    attempts: int = typer.Option(1, "--attempts", "-n", min=1, help="Poll up to N times."),
    interval: float = typer.Option(2.0, "--interval", help="Seconds between attempts."),
    timeout: float = typer.Option(None, "--timeout", help="Per-request timeout in seconds."),
) -> None:
    """Probe URL once (or poll) and exit 0 only on HTTP 200."""
    settings = RunnerSettings()
    target = url or settings.probe_url
    check = HttpHealthCheck(target, timeout=timeout or settings.probe_timeout_seconds)
    if attempts > 1:
        check = PollingHealthCheck(check, attempts=attempts, interval_seconds=interval)

    result = check.check()
    if result.ok:
        console.print(f"[green]{target} -> {result.status_code}[/green] ({result.elapsed_seconds:.3f}s)")
        return
    if not result.reachable:
        console.print(f"[bold red]{target} unreachable:[/bold red] {result.detail}", highlight=False)
    else:
        console.print(f"[bold red]{target} -> {result.status_code}[/bold red] {result.detail}")
    raise typer.Exit(code=1)
