"""Pipeline Runner — build, test, update the descriptor, publish.

The runner executes one Pipeline Run per trigger event as a strict
sequence with fail-fast semantics:

    build -> start -> wait -> probe -> teardown -> update_descriptor -> publish

The test container is owned by a context manager, so teardown runs on
every exit path, including a probe that raises. Steps after teardown are
only reached when the probe answered 200, and only for privileged
triggers (pushes to the integration branch).

State bookkeeping is delegated to ``RunMachine``; talking to Docker, git
and the probe target is delegated to the backend Protocols.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from gitopsflow.backends.docker import DockerEngine
from gitopsflow.backends.git import GitSourceControl
from gitopsflow.backends.health import HttpHealthCheck, PollingHealthCheck
from gitopsflow.backends.protocols import ContainerEngine, HealthCheck, SourceControl
from gitopsflow.config import RunnerSettings
from gitopsflow.core.descriptor import DeploymentDescriptor, DescriptorSnapshot
from gitopsflow.core.errors import (
    BuildError,
    CommandError,
    DescriptorUpdateError,
    PipelineError,
    ProbeFailure,
    ProbeUnreachable,
    PublishError,
    TeardownWarning,
    TriggerIgnoredError,
)
from gitopsflow.core.run_machine import RunMachine
from gitopsflow.models.artifact import Artifact
from gitopsflow.models.run import STEP_ORDER, RunReport, RunState, StepName, StepStatus
from gitopsflow.models.trigger import TriggerClass, TriggerEvent

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (CommandError, OSError)


class _StepScope:
    """Mutable holder a step body fills in before its outcome is recorded."""

    __slots__ = ("step", "detail", "status", "started_at")

    def __init__(self, step: StepName) -> None:
        self.step = step
        self.detail = ""
        self.status = StepStatus.SUCCEEDED
        self.started_at = datetime.now(timezone.utc)


def build_health_check(
    settings: RunnerSettings, sleep: Callable[[float], None] = time.sleep
) -> HealthCheck:
    """Default probe: one GET, wrapped in bounded polling if configured."""
    check: HealthCheck = HttpHealthCheck(
        settings.probe_url, timeout=settings.probe_timeout_seconds
    )
    if settings.probe_attempts > 1:
        check = PollingHealthCheck(
            check,
            attempts=settings.probe_attempts,
            interval_seconds=settings.probe_interval_seconds,
            sleep=sleep,
        )
    return check


class PipelineRunner:
    """Runs the build-test-tag-publish pipeline for single trigger events.

    Parameters
    ----------
    settings:
        Runner settings. Read from the environment if not provided.
    engine:
        Container engine. Defaults to the docker CLI.
    scm:
        Source control used to commit and push the descriptor. Defaults to
        the git CLI in ``settings.source_dir``.
    health_check:
        Probe against the test instance. Defaults to an HTTP GET of
        ``settings.probe_url``.
    descriptor:
        The Deployment Descriptor. Defaults to ``settings.descriptor_path``
        resolved against ``settings.source_dir``.
    sleep:
        Used for the settling delay and publish backoff; injected in tests.
    """

    def __init__(
        self,
        settings: RunnerSettings | None = None,
        engine: ContainerEngine | None = None,
        scm: SourceControl | None = None,
        health_check: HealthCheck | None = None,
        descriptor: DeploymentDescriptor | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings or RunnerSettings()
        s = self.settings
        self.engine = engine or DockerEngine(binary=s.docker_binary)
        self.scm = scm or GitSourceControl(
            repo_dir=s.source_dir,
            remote=s.git_remote,
            user_name=s.git_user_name,
            user_email=s.git_user_email,
            binary=s.git_binary,
        )
        self._sleep = sleep
        self.health_check = health_check or build_health_check(s, sleep)
        self.descriptor = descriptor or DeploymentDescriptor(
            Path(s.source_dir) / s.descriptor_path, s.registry, s.image_name
        )

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def accepts(self, trigger: TriggerEvent) -> bool:
        """Whether *trigger* would start a run at all."""
        return trigger.classify(self.settings.integration_branch) != TriggerClass.IGNORED

    def new_artifact(self, trigger: TriggerEvent) -> Artifact:
        return Artifact(
            repository=self.settings.registry,
            name=self.settings.image_name,
            tag_commit=trigger.commit_sha,
            tag_latest=self.settings.latest_tag,
        )

    def run(self, trigger: TriggerEvent) -> RunReport:
        """Execute one Pipeline Run for *trigger* and return its report.

        Step failures end the run as FAILED with the first failing step's
        error kind; they are reported, not raised. Raises
        ``TriggerIgnoredError`` for events outside the integration branch.
        """
        trigger_class = trigger.classify(self.settings.integration_branch)
        if trigger_class == TriggerClass.IGNORED:
            raise TriggerIgnoredError(
                f"{trigger.kind.value} on {trigger.branch!r} does not target "
                f"{self.settings.integration_branch!r}"
            )

        machine = RunMachine(_new_run_id(trigger), trigger, trigger_class)
        artifact = self.new_artifact(trigger)
        machine.artifact = artifact
        logger.info(
            "run %s: %s %s on %s (%s)",
            machine.run_id,
            trigger.kind.value,
            trigger.short_sha,
            trigger.branch,
            trigger_class.value,
        )

        try:
            machine.advance(RunState.BUILDING)
            self._build(machine, artifact)

            machine.advance(RunState.TESTING)
            self._test(machine, artifact)

            if trigger_class == TriggerClass.UNPRIVILEGED:
                self._skip_remaining(machine, "pull request: no write credentials")
                machine.advance(RunState.SUCCEEDED)
                return machine.report()

            machine.advance(RunState.UPDATING)
            self._update_descriptor(machine, artifact)

            machine.advance(RunState.PUBLISHING)
            self._publish(machine, artifact)

            machine.advance(RunState.SUCCEEDED)
        except PipelineError as exc:
            logger.error("run %s failed: %s: %s", machine.run_id, exc.kind, exc)
            self._skip_remaining(machine, "not reached")
            machine.fail(exc.kind, str(exc))

        return machine.report()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @contextmanager
    def _step(self, machine: RunMachine, step: StepName) -> Iterator[_StepScope]:
        """Record the outcome of the enclosed step body on *machine*."""
        scope = _StepScope(step)
        logger.info("run %s: step %s", machine.run_id, step.value)
        try:
            yield scope
        except PipelineError as exc:
            machine.record(
                step, StepStatus.FAILED, str(exc),
                error_kind=exc.kind, started_at=scope.started_at,
            )
            raise
        machine.record(step, scope.status, scope.detail, started_at=scope.started_at)

    def _build(self, machine: RunMachine, artifact: Artifact) -> None:
        s = self.settings
        with self._step(machine, StepName.BUILD) as scope:
            try:
                self.engine.build(Path(s.source_dir), s.dockerfile, artifact.latest_ref)
            except _BACKEND_ERRORS as exc:
                raise BuildError(f"Build of {artifact.latest_ref} failed: {exc}") from exc
            scope.detail = artifact.latest_ref

    def _test(self, machine: RunMachine, artifact: Artifact) -> None:
        s = self.settings
        with self.test_instance(machine, artifact):
            with self._step(machine, StepName.WAIT) as scope:
                self._sleep(s.settle_seconds)
                scope.detail = f"{s.settle_seconds:g}s"

            with self._step(machine, StepName.PROBE) as scope:
                try:
                    result = self.health_check.check()
                except Exception as exc:
                    raise ProbeFailure(f"{s.probe_url} check raised: {exc}") from exc
                if not result.reachable:
                    raise ProbeUnreachable(
                        f"{result.url} unreachable: {result.detail}", result
                    )
                if not result.ok:
                    raise ProbeFailure(
                        f"{result.url} returned {result.status_code}, expected 200",
                        result,
                    )
                scope.detail = f"{result.url} -> {result.status_code}"

    @contextmanager
    def test_instance(self, machine: RunMachine, artifact: Artifact) -> Iterator[str]:
        """Own the background test container for the duration of the block.

        The container is removed on every exit path. A container that
        failed to start is still removed by name, in case docker created
        it before failing.
        """
        s = self.settings
        name = f"{s.test_container_prefix}-{machine.run_id}"
        container = name
        try:
            with self._step(machine, StepName.START) as scope:
                try:
                    container = self.engine.run_detached(
                        artifact.latest_ref, name, s.host_port, s.container_port
                    )
                except _BACKEND_ERRORS as exc:
                    raise ProbeFailure(
                        f"Test instance of {artifact.latest_ref} failed to start: {exc}"
                    ) from exc
                scope.detail = f"{name} {s.host_port}->{s.container_port}"
            yield container
        finally:
            self._teardown(machine, container)

    def _teardown(self, machine: RunMachine, container: str) -> None:
        started_at = datetime.now(timezone.utc)
        try:
            self.engine.remove(container)
            if self.engine.is_running(container):
                raise CommandError(["remove", container], None, "still running after removal")
        except Exception as exc:  # teardown never changes the run outcome
            warning = TeardownWarning(f"Teardown of {container} failed: {exc}")
            logger.warning("run %s: %s", machine.run_id, warning)
            machine.record(
                StepName.TEARDOWN, StepStatus.WARNING, str(warning),
                error_kind=type(warning).__name__, started_at=started_at,
            )
            return
        machine.record(
            StepName.TEARDOWN, StepStatus.SUCCEEDED, container, started_at=started_at
        )

    def _update_descriptor(self, machine: RunMachine, artifact: Artifact) -> None:
        s = self.settings
        tag = artifact.tag_commit
        with self._step(machine, StepName.UPDATE_DESCRIPTOR) as scope:
            snapshot = self.descriptor.snapshot()
            rewrite = self.descriptor.apply(tag, snapshot.revision)
            if not rewrite.changed:
                machine.descriptor_tag = tag
                scope.detail = f"already at {tag}"
                return

            paths = [self.descriptor.path]
            message = s.commit_message_template.format(tag=tag)
            try:
                commit = self.scm.commit(paths, message)
            except _BACKEND_ERRORS as exc:
                self._rollback_descriptor(snapshot, committed=False)
                raise DescriptorUpdateError(f"Commit of descriptor failed: {exc}") from exc
            try:
                self.scm.push(s.integration_branch)
            except _BACKEND_ERRORS as exc:
                self._rollback_descriptor(snapshot, committed=True)
                raise DescriptorUpdateError(
                    f"Push of descriptor to {s.integration_branch} rejected: {exc}"
                ) from exc

            machine.descriptor_tag = tag
            scope.detail = f"{', '.join(rewrite.previous_tags)} -> {tag} ({commit[:12]})"

    def _rollback_descriptor(self, snapshot: DescriptorSnapshot, *, committed: bool) -> None:
        """Return the working tree to *snapshot* after a failed write-back."""
        if committed:
            try:
                self.scm.undo_last_commit()
            except _BACKEND_ERRORS as exc:
                logger.error("Could not drop local descriptor commit: %s", exc)
        try:
            self.descriptor.restore(snapshot)
        except DescriptorUpdateError as exc:
            logger.error("Could not restore descriptor: %s", exc)

    def _publish(self, machine: RunMachine, artifact: Artifact) -> None:
        s = self.settings
        with self._step(machine, StepName.PUBLISH) as scope:
            try:
                self.engine.tag(artifact.latest_ref, artifact.commit_ref)
                if s.has_registry_credentials:
                    self.engine.login(
                        s.registry_host,
                        s.registry_username,
                        s.registry_password.get_secret_value(),
                    )
                for ref in artifact.refs:
                    self._push_with_retry(ref)
            except _BACKEND_ERRORS as exc:
                raise PublishError(f"Publish of {artifact.name} failed: {exc}") from exc
            scope.detail = ", ".join(artifact.refs)

    def _push_with_retry(self, ref: str) -> None:
        attempts = max(1, self.settings.publish_attempts)
        for attempt in range(1, attempts + 1):
            try:
                self.engine.push(ref)
                return
            except _BACKEND_ERRORS as exc:
                if attempt == attempts:
                    raise
                delay = self.settings.publish_backoff_seconds * 2 ** (attempt - 1)
                logger.warning(
                    "Push of %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    ref, attempt, attempts, delay, exc,
                )
                self._sleep(delay)

    def _skip_remaining(self, machine: RunMachine, reason: str) -> None:
        """Mark every step that has no outcome yet as skipped."""
        done = {o.step for o in machine.steps}
        for step in STEP_ORDER:
            if step not in done:
                machine.record(step, StepStatus.SKIPPED, reason)


def _new_run_id(trigger: TriggerEvent) -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    sha = re.sub(r"[^a-zA-Z0-9]", "", trigger.short_sha) or "nosha"
    return f"gf-{ts}-{sha}-{uuid.uuid4().hex[:3]}"
