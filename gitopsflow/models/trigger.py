"""Trigger events — the push or pull request that starts a Pipeline Run."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class TriggerKind(str, Enum):
    """Source event type, named after the CI event names."""

    PUSH = "push"
    PULL_REQUEST = "pull_request"


class TriggerClass(str, Enum):
    """How much of the pipeline a trigger is allowed to run."""

    PRIVILEGED = "privileged"  # build, test, update descriptor, publish
    UNPRIVILEGED = "unprivileged"  # build and test only
    IGNORED = "ignored"  # no run is created


class TriggerEvent(BaseModel):
    """A single event carrying the commit to build and the branch it targets.

    For pull requests ``branch`` is the head branch and ``base_branch`` is
    the branch the PR targets.
    """

    model_config = ConfigDict(frozen=True)

    commit_sha: str = Field(min_length=1)
    branch: str
    kind: TriggerKind = TriggerKind.PUSH
    base_branch: str | None = None
    received_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def short_sha(self) -> str:
        return self.commit_sha[:7]

    def classify(self, integration_branch: str) -> TriggerClass:
        """Decide which steps this event may run against *integration_branch*.

        Pushes to the integration branch carry write credentials. Pull
        requests targeting it do not, so they stop after testing.
        """
        if self.kind == TriggerKind.PUSH and self.branch == integration_branch:
            return TriggerClass.PRIVILEGED
        if (
            self.kind == TriggerKind.PULL_REQUEST
            and self.base_branch == integration_branch
        ):
            return TriggerClass.UNPRIVILEGED
        return TriggerClass.IGNORED

    @classmethod
    def from_github_env(
        cls, environ: Mapping[str, str] | None = None
    ) -> TriggerEvent:
        """Build a trigger from GitHub Actions environment variables.

        Reads ``GITHUB_SHA``, ``GITHUB_EVENT_NAME``, ``GITHUB_REF_NAME``,
        ``GITHUB_HEAD_REF`` and ``GITHUB_BASE_REF``. Raises ``KeyError``
        when ``GITHUB_SHA`` is missing.
        """
        env = os.environ if environ is None else environ
        event_name = env.get("GITHUB_EVENT_NAME", TriggerKind.PUSH.value)
        kind = (
            TriggerKind.PULL_REQUEST
            if event_name.startswith("pull_request")
            else TriggerKind.PUSH
        )
        if kind == TriggerKind.PULL_REQUEST:
            branch = env.get("GITHUB_HEAD_REF") or env.get("GITHUB_REF_NAME", "")
            base = env.get("GITHUB_BASE_REF") or None
        else:
            branch = env.get("GITHUB_REF_NAME", "")
            base = None
        return cls(
            commit_sha=env["GITHUB_SHA"],
            branch=branch,
            kind=kind,
            base_branch=base,
        )
