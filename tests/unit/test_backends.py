"""Tests for the docker and git CLI backends.

``subprocess.run`` is replaced so the tests only check the argv each
backend would execute and how failures are reported.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from gitopsflow.backends.docker import DockerEngine
from gitopsflow.backends.git import GitSourceControl, classify_push_failure
from gitopsflow.backends.protocols import ContainerEngine, SourceControl
from gitopsflow.core.errors import CommandError


class Recorder:
    """Stands in for ``subprocess.run``; fails argv matching a prefix."""

    def __init__(self) -> None:
        self.calls: list[dict] = []
        self.failures: dict[tuple[str, ...], tuple[int, str]] = {}
        self.stdout: dict[tuple[str, ...], str] = {}

    def fail(self, *prefix: str, code: int = 1, stderr: str = "") -> None:
        self.failures[prefix] = (code, stderr)

    def __call__(self, argv, **kwargs):
        self.calls.append({"argv": list(argv), **kwargs})
        for prefix, (code, stderr) in self.failures.items():
            if tuple(argv[: len(prefix)]) == prefix:
                return subprocess.CompletedProcess(argv, code, "", stderr)
        for prefix, out in self.stdout.items():
            if tuple(argv[: len(prefix)]) == prefix:
                return subprocess.CompletedProcess(argv, 0, out, "")
        return subprocess.CompletedProcess(argv, 0, "", "")

    @property
    def argvs(self) -> list[list[str]]:
        return [c["argv"] for c in self.calls]


@pytest.fixture
def recorder(monkeypatch) -> Recorder:
    rec = Recorder()
    monkeypatch.setattr(subprocess, "run", rec)
    return rec


# ---------------------------------------------------------------------------
# Docker
# ---------------------------------------------------------------------------


class TestDockerEngine:
    def test_satisfies_protocol(self):
        assert isinstance(DockerEngine(), ContainerEngine)

    def test_build(self, recorder: Recorder, tmp_path: Path):
        DockerEngine().build(tmp_path, "Dockerfile", "docker.io/acme/app:latest")
        assert recorder.argvs == [[
            "docker", "build", "-f", str(tmp_path / "Dockerfile"),
            "-t", "docker.io/acme/app:latest", str(tmp_path),
        ]]

    def test_build_failure_raises_command_error(self, recorder: Recorder, tmp_path: Path):
        recorder.fail("docker", "build", code=1, stderr="failed to solve")
        with pytest.raises(CommandError) as info:
            DockerEngine().build(tmp_path, "Dockerfile", "img:latest")
        assert info.value.returncode == 1
        assert "failed to solve" in str(info.value)

    def test_run_detached(self, recorder: Recorder):
        recorder.stdout[("docker", "run")] = "0123456789abcdef\n"
        cid = DockerEngine().run_detached("img:latest", "test-app", 8080, 5000)
        assert cid == "0123456789abcdef"
        assert recorder.argvs[0] == [
            "docker", "run", "-d", "-p", "8080:5000", "--name", "test-app", "img:latest",
        ]

    def test_remove(self, recorder: Recorder):
        DockerEngine().remove("test-app")
        assert recorder.argvs == [["docker", "rm", "-f", "test-app"]]

    def test_is_running(self, recorder: Recorder):
        recorder.stdout[("docker", "inspect")] = "true\n"
        assert DockerEngine().is_running("test-app") is True

    def test_is_running_missing_container(self, recorder: Recorder):
        recorder.fail("docker", "inspect", stderr="No such object")
        assert DockerEngine().is_running("gone") is False

    def test_login_uses_stdin(self, recorder: Recorder):
        DockerEngine().login("docker.io", "bot", "s3cret")
        call = recorder.calls[0]
        assert call["argv"] == ["docker", "login", "docker.io", "-u", "bot", "--password-stdin"]
        assert call["input"] == "s3cret"
        assert "s3cret" not in call["argv"]

    def test_tag_and_push(self, recorder: Recorder):
        engine = DockerEngine(binary="/usr/bin/docker")
        engine.tag("img:latest", "img:abc")
        engine.push("img:abc")
        assert recorder.argvs == [
            ["/usr/bin/docker", "tag", "img:latest", "img:abc"],
            ["/usr/bin/docker", "push", "img:abc"],
        ]

    def test_missing_binary(self, monkeypatch):
        def boom(*a, **k):
            raise FileNotFoundError("docker")

        monkeypatch.setattr(subprocess, "run", boom)
        with pytest.raises(CommandError) as info:
            DockerEngine().push("img:abc")
        assert info.value.returncode is None
        assert "could not start" in str(info.value)

    def test_timeout(self, monkeypatch, tmp_path: Path):
        def slow(argv, **k):
            raise subprocess.TimeoutExpired(argv, k.get("timeout"))

        monkeypatch.setattr(subprocess, "run", slow)
        with pytest.raises(CommandError, match="timed out"):
            DockerEngine(build_timeout=1).build(tmp_path, "Dockerfile", "img:latest")


# ---------------------------------------------------------------------------
# Git
# ---------------------------------------------------------------------------


class TestGitSourceControl:
    def test_satisfies_protocol(self, tmp_path: Path):
        assert isinstance(GitSourceControl(tmp_path), SourceControl)

    def test_commit(self, recorder: Recorder, tmp_path: Path):
        recorder.stdout[("git", "rev-parse")] = "deadbeef\n"
        path = tmp_path / "k8s" / "deployment.yaml"
        commit = GitSourceControl(tmp_path).commit([path], "Update image tag to abc")

        pathspec = str(Path("k8s") / "deployment.yaml")
        assert commit == "deadbeef"
        assert recorder.argvs == [
            ["git", "add", "--", pathspec],
            ["git", "commit", "-m", "Update image tag to abc", "--", pathspec],
            ["git", "rev-parse", "HEAD"],
        ]
        assert all(c["cwd"] == tmp_path for c in recorder.calls)

    def test_commit_identity(self, recorder: Recorder, tmp_path: Path):
        scm = GitSourceControl(tmp_path, user_name="ci", user_email="ci@example.com")
        scm.commit([Path("a")], "msg")
        assert recorder.argvs[0][:5] == [
            "git", "-c", "user.name=ci", "-c", "user.email=ci@example.com",
        ]

    def test_commit_failure_unstages(self, recorder: Recorder, tmp_path: Path):
        recorder.fail("git", "commit", stderr="nothing to commit")
        with pytest.raises(CommandError):
            GitSourceControl(tmp_path).commit([tmp_path / "a"], "msg")
        assert recorder.argvs[-1] == ["git", "reset", "-q", "--", "a"]

    def test_commit_paths_relative_to_cwd(self, recorder: Recorder, tmp_path: Path, monkeypatch):
        (tmp_path / "demo" / "k8s").mkdir(parents=True)
        monkeypatch.chdir(tmp_path)
        scm = GitSourceControl(Path("demo"))
        scm.commit([Path("demo") / "k8s" / "deployment.yaml"], "msg")

        pathspec = str(Path("k8s") / "deployment.yaml")
        assert recorder.argvs[0] == ["git", "add", "--", pathspec]
        assert recorder.calls[0]["cwd"] == Path("demo")

    def test_push(self, recorder: Recorder, tmp_path: Path):
        GitSourceControl(tmp_path, remote="upstream").push("main")
        assert recorder.argvs == [["git", "push", "upstream", "HEAD:main"]]

    def test_push_rejected_is_classified(self, recorder: Recorder, tmp_path: Path):
        recorder.fail(
            "git", "push",
            stderr=" ! [rejected]        main -> main (fetch first)",
        )
        with pytest.raises(CommandError) as info:
            GitSourceControl(tmp_path).push("main")
        assert info.value.reason == "non-fast-forward"
        assert "non-fast-forward" in str(info.value)

    def test_undo_last_commit(self, recorder: Recorder, tmp_path: Path):
        GitSourceControl(tmp_path).undo_last_commit()
        assert recorder.argvs == [["git", "reset", "--mixed", "HEAD~1"]]


class TestClassifyPushFailure:
    @pytest.mark.parametrize(
        "stderr,expected",
        [
            ("! [rejected] main -> main (non-fast-forward)", "non-fast-forward"),
            ("remote: Permission to acme/app.git denied to bot.", "permission-denied"),
            ("fatal: Authentication failed for 'https://github.com/acme/app'", "permission-denied"),
            ("The requested URL returned error: 403", "permission-denied"),
            ("fatal: unable to access: Could not resolve host", "other"),
        ],
    )
    def test_classify(self, stderr, expected):
        assert classify_push_failure(stderr) == expected
