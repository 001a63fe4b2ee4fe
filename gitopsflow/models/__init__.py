"""gitopsflow data models — all Pydantic v2, all frozen (immutable)."""

from gitopsflow.models.artifact import Artifact
from gitopsflow.models.probe import UNREACHABLE_STATUS, ProbeResult
from gitopsflow.models.run import (
    STEP_ORDER,
    TERMINAL_STATES,
    VALID_RUN_TRANSITIONS,
    RunReport,
    RunState,
    StepName,
    StepOutcome,
    StepStatus,
)
from gitopsflow.models.trigger import TriggerClass, TriggerEvent, TriggerKind

__all__ = [
    # trigger
    "TriggerKind",
    "TriggerClass",
    "TriggerEvent",
    # artifact
    "Artifact",
    # probe
    "ProbeResult",
    "UNREACHABLE_STATUS",
    # run
    "RunState",
    "VALID_RUN_TRANSITIONS",
    "TERMINAL_STATES",
    "StepName",
    "STEP_ORDER",
    "StepStatus",
    "StepOutcome",
    "RunReport",
]
