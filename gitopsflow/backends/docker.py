"""Docker CLI container engine."""

from __future__ import annotations

import logging
from pathlib import Path

from gitopsflow.backends._exec import run_command
from gitopsflow.core.errors import CommandError

logger = logging.getLogger(__name__)


class DockerEngine:
    """``ContainerEngine`` backed by the ``docker`` command line.

    Parameters
    ----------
    binary:
        Name or path of the docker executable.
    build_timeout:
        Upper bound in seconds for ``docker build``. ``None`` waits forever.
    """

    def __init__(self, binary: str = "docker", build_timeout: float | None = None) -> None:
        self.binary = binary
        self.build_timeout = build_timeout

    def build(self, context_dir: Path, dockerfile: str, image_ref: str) -> None:
        logger.info("docker build %s -> %s", context_dir, image_ref)
        run_command(
            [self.binary, "build", "-f", str(Path(context_dir) / dockerfile),
             "-t", image_ref, str(context_dir)],
            timeout=self.build_timeout,
        )

    def run_detached(
        self, image_ref: str, name: str, host_port: int, container_port: int
    ) -> str:
        container_id = run_command(
            [self.binary, "run", "-d", "-p", f"{host_port}:{container_port}",
             "--name", name, image_ref]
        )
        logger.info("Started %s as %s (%s)", image_ref, name, container_id[:12])
        return container_id or name

    def remove(self, container: str) -> None:
        run_command([self.binary, "rm", "-f", container])
        logger.info("Removed container %s", container[:12])

    def is_running(self, container: str) -> bool:
        try:
            out = run_command(
                [self.binary, "inspect", "-f", "{{.State.Running}}", container]
            )
        except CommandError:
            return False
        return out.strip() == "true"

    def tag(self, source_ref: str, target_ref: str) -> None:
        run_command([self.binary, "tag", source_ref, target_ref])

    def login(self, registry: str, username: str, password: str) -> None:
        run_command(
            [self.binary, "login", registry, "-u", username, "--password-stdin"],
            input_text=password,
        )
        logger.info("Logged in to %s as %s", registry, username)

    def push(self, image_ref: str) -> None:
        logger.info("docker push %s", image_ref)
        run_command([self.binary, "push", image_ref])
