"""Main Typer application — imports and registers all CLI commands.

Entry point: ``gitopsflow`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.logging import RichHandler

from gitopsflow.cli.commands.bump import bump_cmd
from gitopsflow.cli.commands.probe import probe_cmd
from gitopsflow.cli.commands.run import run_cmd
from gitopsflow.cli.commands.settings_cmd import settings_cmd
from gitopsflow.config import settings

app = typer.Typer(
    name="gitopsflow",
    help="gitopsflow: build, test, tag and publish a container image for GitOps delivery.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="run", help="Run the pipeline for one trigger event.")(run_cmd)
app.command(name="bump", help="Rewrite the descriptor's image tag locally.")(bump_cmd)
app.command(name="probe", help="Health-check a running instance.")(probe_cmd)
app.command(name="settings", help="Show effective settings.")(settings_cmd)


def configure_logging(level: str) -> None:
    """Route stdlib logging through Rich at *level*."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        settings.log_level, "--log-level", help="Logging level (DEBUG, INFO, ...)."
    ),
) -> None:
    """gitopsflow: build, test, tag and publish a container image for GitOps delivery."""
    configure_logging(log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
