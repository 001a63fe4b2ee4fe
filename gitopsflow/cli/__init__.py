"""gitopsflow CLI — Typer-based command-line interface.

Provides the ``gitopsflow`` command with subcommands for running the
pipeline, bumping the descriptor, probing a service and inspecting
settings.

All output uses Rich for formatted terminal display.
"""
