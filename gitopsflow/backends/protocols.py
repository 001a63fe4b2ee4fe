"""Pluggable backend Protocols for the Pipeline Runner.

The runner talks to three external systems and nothing else:

1. a **container engine** that builds, runs, tags and pushes images,
2. a **source control** client that commits and pushes the descriptor,
3. a **health check** that probes the running test instance.

Any object with the right methods satisfies these protocols; the defaults
live in ``gitopsflow.backends.docker``, ``.git`` and ``.health``. Tests
substitute in-memory fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, runtime_checkable

from gitopsflow.models.probe import ProbeResult


@runtime_checkable
class ContainerEngine(Protocol):
    """Protocol for image build/run/publish backends.

    Every method raises ``CommandError`` (or ``OSError``) on failure.
    """

    def build(self, context_dir: Path, dockerfile: str, image_ref: str) -> None:
        """Build *context_dir* with *dockerfile* and tag the result *image_ref*."""
        ...

    def run_detached(
        self, image_ref: str, name: str, host_port: int, container_port: int
    ) -> str:
        """Start *image_ref* in the background; return the container id."""
        ...

    def remove(self, container: str) -> None:
        """Stop and remove a container (force)."""
        ...

    def is_running(self, container: str) -> bool:
        """Return ``True`` if *container* exists and is running."""
        ...

    def tag(self, source_ref: str, target_ref: str) -> None:
        """Add *target_ref* as another name for *source_ref*."""
        ...

    def login(self, registry: str, username: str, password: str) -> None:
        """Authenticate against *registry*."""
        ...

    def push(self, image_ref: str) -> None:
        """Push *image_ref* to its registry."""
        ...


@runtime_checkable
class SourceControl(Protocol):
    """Protocol for committing and pushing the Deployment Descriptor."""

    def commit(self, paths: list[Path], message: str) -> str:
        """Commit *paths* only and return the new commit id.

        If the commit fails nothing is left staged.
        """
        ...

    def push(self, branch: str) -> None:
        """Push the current HEAD to *branch* on the remote.

        A rejected push leaves the local commit in place so the caller can
        decide to call ``undo_last_commit()``.
        """
        ...

    def undo_last_commit(self) -> None:
        """Drop the last local commit, keeping the working tree."""
        ...


@runtime_checkable
class HealthCheck(Protocol):
    """Protocol for liveness checks: ``check() -> ProbeResult``.

    Never raises for an unhealthy service; unreachable targets are reported
    through ``ProbeResult.reachable`` and the sentinel status code.
    """

    def check(self) -> ProbeResult:
        ...
