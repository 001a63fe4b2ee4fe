"""Deterministic run state machine.

Enforces:
- Valid state transitions only (VALID_RUN_TRANSITIONS table)
- Terminal states are final
- Every step outcome recorded in order
- The first failure's error kind is the one reported
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from gitopsflow.models.artifact import Artifact
from gitopsflow.models.run import (
    TERMINAL_STATES,
    VALID_RUN_TRANSITIONS,
    RunReport,
    RunState,
    StepName,
    StepOutcome,
    StepStatus,
)
from gitopsflow.models.trigger import TriggerClass, TriggerEvent

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class RunMachine:
    """Tracks one Pipeline Run through its states.

    Parameters
    ----------
    run_id:
        Identifier for log lines and the report.
    trigger:
        The event that started the run.
    trigger_class:
        Result of ``trigger.classify()``; decides whether TESTING may
        finish the run directly.
    """

    def __init__(
        self, run_id: str, trigger: TriggerEvent, trigger_class: TriggerClass
    ) -> None:
        self.run_id = run_id
        self.trigger = trigger
        self.trigger_class = trigger_class
        self.state = RunState.IDLE
        self.history: list[RunState] = [RunState.IDLE]
        self.steps: list[StepOutcome] = []
        self.error_kind: str | None = None
        self.error_message: str | None = None
        self.artifact: Artifact | None = None
        self.descriptor_tag: str | None = None
        self.started_at = datetime.now(timezone.utc)
        self.finished_at: datetime | None = None

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def advance(self, target: RunState) -> None:
        """Move to *target*, validating against the transition table."""
        allowed = VALID_RUN_TRANSITIONS.get(self.state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition run {self.run_id} from {self.state.value} "
                f"to {target.value}. Allowed: {sorted(s.value for s in allowed)}"
            )
        if (
            self.state == RunState.TESTING
            and target == RunState.SUCCEEDED
            and self.trigger_class == TriggerClass.PRIVILEGED
        ):
            raise InvalidTransitionError(
                f"Run {self.run_id} is privileged; it must update the "
                "descriptor and publish before succeeding"
            )
        logger.info("run %s: %s -> %s", self.run_id, self.state.value, target.value)
        self.state = target
        self.history.append(target)
        if target in TERMINAL_STATES:
            self.finished_at = datetime.now(timezone.utc)

    def fail(self, error_kind: str, message: str) -> None:
        """Terminate the run as FAILED, keeping the first error reported."""
        if self.error_kind is None:
            self.error_kind = error_kind
            self.error_message = message
        self.advance(RunState.FAILED)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    # ------------------------------------------------------------------
    # Step outcomes
    # ------------------------------------------------------------------

    def record(
        self,
        step: StepName,
        status: StepStatus,
        detail: str = "",
        *,
        error_kind: str | None = None,
        started_at: datetime | None = None,
    ) -> StepOutcome:
        """Append the outcome of *step*."""
        now = datetime.now(timezone.utc)
        outcome = StepOutcome(
            step=step,
            status=status,
            detail=detail,
            error_kind=error_kind,
            started_at=started_at or now,
            finished_at=now,
        )
        self.steps.append(outcome)
        return outcome

    def report(self) -> RunReport:
        """Freeze the current state into a ``RunReport``."""
        return RunReport(
            run_id=self.run_id,
            trigger=self.trigger,
            trigger_class=self.trigger_class,
            state=self.state,
            steps=list(self.steps),
            error_kind=self.error_kind,
            error_message=self.error_message,
            artifact=self.artifact,
            descriptor_tag=self.descriptor_tag,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )
