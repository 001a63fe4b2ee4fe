"""Serialized run queue — strict FIFO per branch.

Two runs racing on the same Deployment Descriptor can clobber each
other's tag update. The queue gives every branch a single worker, so runs
for one branch execute one at a time in submission order. Runs for
different branches may overlap; the descriptor's compare-and-swap write
covers that case.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor

from gitopsflow.core.errors import TriggerIgnoredError
from gitopsflow.core.runner import PipelineRunner
from gitopsflow.models.run import RunReport
from gitopsflow.models.trigger import TriggerEvent

logger = logging.getLogger(__name__)


class RunQueue:
    """Queues Pipeline Runs and executes them FIFO per branch.

    Lanes are created on first use and kept until ``shutdown()``. Only
    triggers the runner accepts are queued, and those all resolve to the
    integration branch, so at most one lane ever exists.

    Parameters
    ----------
    runner:
        The runner every queued trigger is handed to.

    Usage::

        with RunQueue(runner) as queue:
            future = queue.submit(trigger)
            report = future.result()
    """

    def __init__(self, runner: PipelineRunner) -> None:
        self.runner = runner
        self._workers: dict[str, ThreadPoolExecutor] = {}
        self._lock = threading.Lock()
        self._closed = False

    def _worker_for(self, branch: str) -> ThreadPoolExecutor:
        worker = self._workers.get(branch)
        if worker is None:
            worker = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix=f"gitopsflow-{branch}"
            )
            self._workers[branch] = worker
        return worker

    def submit(self, trigger: TriggerEvent) -> Future[RunReport]:
        """Queue a run for *trigger* behind earlier runs on the same branch.

        Raises ``TriggerIgnoredError`` immediately for triggers the runner
        does not act on, and ``RuntimeError`` after ``shutdown()``.
        """
        if not self.runner.accepts(trigger):
            raise TriggerIgnoredError(
                f"{trigger.kind.value} on {trigger.branch!r} is not acted upon"
            )
        # Pull requests share the lane of the branch they target.
        lane = trigger.base_branch or trigger.branch
        with self._lock:
            if self._closed:
                raise RuntimeError("RunQueue is shut down")
            worker = self._worker_for(lane)
            future = worker.submit(self.runner.run, trigger)
        logger.info("Queued %s on lane %s", trigger.short_sha, lane)
        return future

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting triggers; optionally wait for queued runs."""
        with self._lock:
            self._closed = True
            workers = list(self._workers.values())
        for worker in workers:
            worker.shutdown(wait=wait)

    @property
    def lanes(self) -> list[str]:
        with self._lock:
            return sorted(self._workers)

    def __enter__(self) -> RunQueue:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(wait=True)
