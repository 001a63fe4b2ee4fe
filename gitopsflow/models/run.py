"""Pipeline Run models — run states, transitions and step outcomes."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from gitopsflow.models.artifact import Artifact
from gitopsflow.models.trigger import TriggerClass, TriggerEvent


class RunState(str, Enum):
    """Strict state model for a single Pipeline Run."""

    IDLE = "idle"
    BUILDING = "building"
    TESTING = "testing"
    UPDATING = "updating"
    PUBLISHING = "publishing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# Valid run transitions, enforced by RunMachine.
# TESTING -> SUCCEEDED is only taken by unprivileged (pull request) runs.
VALID_RUN_TRANSITIONS: dict[RunState, set[RunState]] = {
    RunState.IDLE: {RunState.BUILDING},
    RunState.BUILDING: {RunState.TESTING, RunState.FAILED},
    RunState.TESTING: {RunState.UPDATING, RunState.SUCCEEDED, RunState.FAILED},
    RunState.UPDATING: {RunState.PUBLISHING, RunState.FAILED},
    RunState.PUBLISHING: {RunState.SUCCEEDED, RunState.FAILED},
    RunState.SUCCEEDED: set(),  # terminal
    RunState.FAILED: set(),  # terminal
}

TERMINAL_STATES: frozenset[RunState] = frozenset(
    state for state, targets in VALID_RUN_TRANSITIONS.items() if not targets
)


class StepName(str, Enum):
    """The ordered steps of a run."""

    BUILD = "build"
    START = "start"
    WAIT = "wait"
    PROBE = "probe"
    TEARDOWN = "teardown"
    UPDATE_DESCRIPTOR = "update_descriptor"
    PUBLISH = "publish"


STEP_ORDER: list[StepName] = list(StepName)


class StepStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    WARNING = "warning"  # non-fatal, e.g. teardown trouble


class StepOutcome(BaseModel):
    """Records how one step ended."""

    model_config = ConfigDict(frozen=True)

    step: StepName
    status: StepStatus
    detail: str = ""
    error_kind: str | None = None
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    finished_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class RunReport(BaseModel):
    """Ephemeral record of one Pipeline Run, handed back to the caller.

    Nothing here is persisted; run history is the CI system's concern.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    trigger: TriggerEvent
    trigger_class: TriggerClass
    state: RunState
    steps: list[StepOutcome] = []
    error_kind: str | None = None
    error_message: str | None = None
    artifact: Artifact | None = None
    descriptor_tag: str | None = None
    started_at: datetime
    finished_at: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.state == RunState.SUCCEEDED

    @property
    def failed_step(self) -> StepName | None:
        """The first step that failed, if any."""
        for outcome in self.steps:
            if outcome.status == StepStatus.FAILED:
                return outcome.step
        return None

    def step(self, name: StepName) -> StepOutcome | None:
        """Return the outcome recorded for *name*, or None if it never ran."""
        for outcome in self.steps:
            if outcome.step == name:
                return outcome
        return None
