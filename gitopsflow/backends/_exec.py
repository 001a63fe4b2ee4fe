"""Thin subprocess wrapper shared by the CLI-backed engines."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from gitopsflow.core.errors import CommandError

logger = logging.getLogger(__name__)


def run_command(
    argv: list[str],
    *,
    cwd: Path | None = None,
    input_text: str | None = None,
    timeout: float | None = None,
) -> str:
    """Run *argv* and return its stripped stdout.

    Raises ``CommandError`` on a non-zero exit, a timeout, or when the
    binary cannot be launched.
    """
    logger.debug("exec: %s", " ".join(argv))
    try:
        result = subprocess.run(
            argv,
            cwd=cwd,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        raise CommandError(argv, None, f"timed out after {timeout}s") from exc
    except OSError as exc:
        raise CommandError(argv, None, str(exc)) from exc

    if result.returncode != 0:
        raise CommandError(argv, result.returncode, (result.stderr or "").strip())
    return (result.stdout or "").strip()
