"""Shared test fixtures for gitopsflow.

The runner's backends are replaced with in-memory fakes that record every
call, so tests can assert on what would have been sent to docker, git and
the probe target.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from gitopsflow.config import RunnerSettings
from gitopsflow.core.descriptor import DeploymentDescriptor
from gitopsflow.core.errors import CommandError
from gitopsflow.core.runner import PipelineRunner
from gitopsflow.models.probe import ProbeResult
from gitopsflow.models.trigger import TriggerEvent, TriggerKind

REGISTRY = "docker.io/acme"
IMAGE = "flask-app"

DEPLOYMENT_YAML = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: flask-app
spec:
  replicas: 2
  template:
    spec:
      containers:
        - name: flask-app
          image: docker.io/acme/flask-app:oldtag
          ports:
            - containerPort: 5000
        - name: sidecar
          image: docker.io/acme/log-shipper:1.4.2
"""


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeEngine:
    """In-memory ``ContainerEngine``."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.images: set[str] = set()
        self.running: set[str] = set()
        self.started: list[str] = []
        self.pushed: list[str] = []
        self.fail_build = False
        self.fail_start = False
        self.fail_remove = False
        self.fail_login = False
        self.push_failures = 0  # number of pushes that fail before succeeding

    def build(self, context_dir: Path, dockerfile: str, image_ref: str) -> None:
        self.calls.append(("build", str(context_dir), dockerfile, image_ref))
        if self.fail_build:
            raise CommandError(["docker", "build"], 1, "failed to solve: bad recipe")
        self.images.add(image_ref)

    def run_detached(
        self, image_ref: str, name: str, host_port: int, container_port: int
    ) -> str:
        self.calls.append(("run", image_ref, name, host_port, container_port))
        if self.fail_start:
            raise CommandError(["docker", "run"], 125, "port is already allocated")
        self.running.add(name)
        self.started.append(name)
        return name

    def remove(self, container: str) -> None:
        self.calls.append(("remove", container))
        if self.fail_remove:
            raise CommandError(["docker", "rm"], 1, "daemon not responding")
        self.running.discard(container)

    def is_running(self, container: str) -> bool:
        return container in self.running

    def tag(self, source_ref: str, target_ref: str) -> None:
        self.calls.append(("tag", source_ref, target_ref))
        self.images.add(target_ref)

    def login(self, registry: str, username: str, password: str) -> None:
        self.calls.append(("login", registry, username))
        if self.fail_login:
            raise CommandError(["docker", "login"], 1, "unauthorized")

    def push(self, image_ref: str) -> None:
        self.calls.append(("push", image_ref))
        if self.push_failures > 0:
            self.push_failures -= 1
            raise CommandError(["docker", "push"], 1, "connection reset by peer")
        self.pushed.append(image_ref)

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]


class FakeSourceControl:
    """In-memory ``SourceControl``."""

    def __init__(self) -> None:
        self.commits: list[tuple[list[Path], str]] = []
        self.pushed_branches: list[str] = []
        self.undone = 0
        self.fail_commit = False
        self.fail_push = False

    def commit(self, paths: list[Path], message: str) -> str:
        if self.fail_commit:
            raise CommandError(["git", "commit"], 1, "nothing to commit")
        self.commits.append((list(paths), message))
        return f"c0ffee{len(self.commits):034d}"

    def push(self, branch: str) -> None:
        if self.fail_push:
            raise CommandError(
                ["git", "push"], 1, "! [rejected] main -> main (non-fast-forward)",
                "non-fast-forward",
            )
        self.pushed_branches.append(branch)

    def undo_last_commit(self) -> None:
        self.undone += 1
        self.commits.pop()


class FakeHealthCheck:
    """``HealthCheck`` returning a fixed status, or raising."""

    def __init__(self, status_code: int = 200, reachable: bool = True) -> None:
        self.status_code = status_code
        self.reachable = reachable
        self.raises: Exception | None = None
        self.calls = 0

    def check(self) -> ProbeResult:
        self.calls += 1
        if self.raises is not None:
            raise self.raises
        if not self.reachable:
            return ProbeResult.unreachable("http://127.0.0.1:5000/", "Connection refused")
        return ProbeResult(
            url="http://127.0.0.1:5000/",
            status_code=self.status_code,
            reachable=True,
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def descriptor_path(tmp_path: Path) -> Path:
    """A Kubernetes Deployment manifest pointing at ``oldtag``."""
    path = tmp_path / "k8s" / "deployment.yaml"
    path.parent.mkdir(parents=True)
    path.write_text(DEPLOYMENT_YAML, encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path: Path, descriptor_path: Path) -> RunnerSettings:
    """Settings rooted at the temp source tree, ignoring any .env file."""
    return RunnerSettings(
        _env_file=None,
        source_dir=tmp_path,
        descriptor_path=Path("k8s/deployment.yaml"),
        registry=REGISTRY,
        image_name=IMAGE,
        integration_branch="main",
        settle_seconds=10,
    )


@pytest.fixture
def descriptor(descriptor_path: Path) -> DeploymentDescriptor:
    return DeploymentDescriptor(descriptor_path, REGISTRY, IMAGE)


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def scm() -> FakeSourceControl:
    return FakeSourceControl()


@pytest.fixture
def health() -> FakeHealthCheck:
    return FakeHealthCheck()


@pytest.fixture
def sleeps() -> list[float]:
    """Collects every delay the runner asked for instead of sleeping."""
    return []


@pytest.fixture
def runner(
    settings: RunnerSettings,
    engine: FakeEngine,
    scm: FakeSourceControl,
    health: FakeHealthCheck,
    sleeps: list[float],
) -> PipelineRunner:
    """A PipelineRunner wired entirely to fakes."""
    return PipelineRunner(
        settings,
        engine=engine,
        scm=scm,
        health_check=health,
        sleep=sleeps.append,
    )


@pytest.fixture
def make_trigger() -> Callable[..., TriggerEvent]:
    """Factory fixture: build a TriggerEvent (push to main by default)."""

    def _factory(
        commit_sha: str = "abc123",
        branch: str = "main",
        kind: TriggerKind = TriggerKind.PUSH,
        **overrides: Any,
    ) -> TriggerEvent:
        return TriggerEvent(commit_sha=commit_sha, branch=branch, kind=kind, **overrides)

    return _factory


@pytest.fixture
def pr_trigger(make_trigger: Callable[..., TriggerEvent]) -> TriggerEvent:
    """A pull request from ``feature/x`` targeting ``main``."""
    return make_trigger(
        commit_sha="fee1dead",
        branch="feature/x",
        kind=TriggerKind.PULL_REQUEST,
        base_branch="main",
    )
