"""Git CLI source control backend."""

from __future__ import annotations

import logging
from pathlib import Path

from gitopsflow.backends._exec import run_command
from gitopsflow.core.errors import CommandError

logger = logging.getLogger(__name__)

# stderr fragments git prints for the rejections callers care about.
_NON_FAST_FORWARD_MARKERS = ("non-fast-forward", "[rejected]", "fetch first")
_PERMISSION_MARKERS = (
    "permission denied",
    "permission to",
    "403",
    "authentication failed",
    "could not read username",
)


def classify_push_failure(stderr: str) -> str:
    """Return ``"non-fast-forward"``, ``"permission-denied"`` or ``"other"``."""
    lowered = stderr.lower()
    if any(marker in lowered for marker in _NON_FAST_FORWARD_MARKERS):
        return "non-fast-forward"
    if any(marker in lowered for marker in _PERMISSION_MARKERS):
        return "permission-denied"
    return "other"


class GitSourceControl:
    """``SourceControl`` backed by the ``git`` command line.

    Parameters
    ----------
    repo_dir:
        Working tree the descriptor lives in.
    remote:
        Remote to push to.
    user_name / user_email:
        Optional committer identity, applied with ``git -c`` so the
        repository config is left alone.
    binary:
        Name or path of the git executable.
    """

    def __init__(
        self,
        repo_dir: Path,
        remote: str = "origin",
        user_name: str = "",
        user_email: str = "",
        binary: str = "git",
    ) -> None:
        self.repo_dir = Path(repo_dir)
        self.remote = remote
        self.user_name = user_name
        self.user_email = user_email
        self.binary = binary

    def _git(self, *args: str) -> str:
        argv = [self.binary]
        if self.user_name:
            argv += ["-c", f"user.name={self.user_name}"]
        if self.user_email:
            argv += ["-c", f"user.email={self.user_email}"]
        argv += list(args)
        return run_command(argv, cwd=self.repo_dir)

    def _pathspec(self, path: Path) -> str:
        """*path* as git sees it from ``repo_dir``.

        Relative paths are taken relative to the process working directory,
        not to ``repo_dir``.
        """
        resolved = Path(path).resolve()
        try:
            return str(resolved.relative_to(self.repo_dir.resolve()))
        except ValueError:
            return str(resolved)

    def commit(self, paths: list[Path], message: str) -> str:
        names = [self._pathspec(p) for p in paths]
        self._git("add", "--", *names)
        try:
            self._git("commit", "-m", message, "--", *names)
        except CommandError:
            self._git("reset", "-q", "--", *names)
            raise
        commit = self._git("rev-parse", "HEAD")
        logger.info("Committed %s: %s", commit[:12], message)
        return commit

    def push(self, branch: str) -> None:
        try:
            self._git("push", self.remote, f"HEAD:{branch}")
        except CommandError as exc:
            reason = classify_push_failure(exc.stderr)
            logger.error("Push to %s/%s rejected (%s)", self.remote, branch, reason)
            raise CommandError(exc.command, exc.returncode, exc.stderr, reason) from exc
        logger.info("Pushed HEAD to %s/%s", self.remote, branch)

    def undo_last_commit(self) -> None:
        self._git("reset", "--mixed", "HEAD~1")
        logger.info("Dropped local commit in %s", self.repo_dir)
