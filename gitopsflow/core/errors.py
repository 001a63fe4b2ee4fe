"""Error taxonomy for Pipeline Runs.

Every step-level failure is a ``PipelineError`` subclass whose ``kind`` is
reported on the ``RunReport``. ``TeardownWarning`` is the one non-fatal
kind: it is logged and recorded, never raised out of the runner.
"""

from __future__ import annotations

from gitopsflow.models.probe import ProbeResult


class PipelineError(RuntimeError):
    """Base class for errors that abort a Pipeline Run."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class BuildError(PipelineError):
    """The build recipe could not produce a runnable image."""


class ProbeFailure(PipelineError):
    """The test instance did not answer the probe with HTTP 200."""

    def __init__(self, message: str, result: ProbeResult | None = None) -> None:
        super().__init__(message)
        self.result = result


class ProbeUnreachable(ProbeFailure):
    """The probe never got an HTTP response (refused, reset, timed out)."""


class DescriptorUpdateError(PipelineError):
    """The descriptor could not be rewritten, committed or pushed."""


class DescriptorConflictError(DescriptorUpdateError):
    """The descriptor changed between read and write (lost-update guard)."""


class PublishError(PipelineError):
    """Pushing the image to the registry failed (auth or network)."""


class TeardownWarning(UserWarning):
    """Stopping or removing the test instance failed. Non-fatal."""


class TriggerIgnoredError(ValueError):
    """Raised when a run is requested for a trigger the runner does not act on."""


class CommandError(RuntimeError):
    """An external command (docker, git) exited non-zero or could not start.

    Parameters
    ----------
    command:
        The argv that was executed.
    returncode:
        Exit status, or ``None`` if the binary could not be launched.
    stderr:
        Captured standard error, stripped.
    reason:
        Optional short classification (e.g. ``"non-fast-forward"``).
    """

    def __init__(
        self,
        command: list[str],
        returncode: int | None,
        stderr: str = "",
        reason: str | None = None,
    ) -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr
        self.reason = reason
        status = "could not start" if returncode is None else f"exited {returncode}"
        msg = f"{' '.join(self.command)} {status}"
        if reason:
            msg += f" ({reason})"
        if stderr:
            msg += f": {stderr}"
        super().__init__(msg)
