"""HTTP health checks for the test instance."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable

import requests

from gitopsflow.backends.protocols import HealthCheck
from gitopsflow.models.probe import ProbeResult

logger = logging.getLogger(__name__)


class HttpHealthCheck:
    """Single synchronous ``GET`` against *url*.

    Any HTTP response is reported with its status code. Connection
    failures and timeouts produce the unreachable sentinel instead of
    raising, so the runner only ever sees a ``ProbeResult``.
    """

    def __init__(self, url: str, timeout: float = 5.0) -> None:
        self.url = url
        self.timeout = timeout

    def check(self) -> ProbeResult:
        start = time.monotonic()
        try:
            response = requests.get(self.url, timeout=self.timeout)
        except requests.RequestException as exc:
            elapsed = time.monotonic() - start
            logger.warning("Probe %s unreachable: %s", self.url, exc)
            return ProbeResult(
                url=self.url,
                reachable=False,
                detail=f"{type(exc).__name__}: {exc}",
                elapsed_seconds=elapsed,
            )
        elapsed = time.monotonic() - start
        logger.info("Probe %s -> %s (%.3fs)", self.url, response.status_code, elapsed)
        return ProbeResult(
            url=self.url,
            status_code=response.status_code,
            reachable=True,
            detail=response.reason or "",
            elapsed_seconds=elapsed,
        )


class PollingHealthCheck:
    """Bounded polling around another ``HealthCheck``.

    Returns the first passing result, or the last result once *attempts*
    checks have failed. With ``attempts=1`` it behaves exactly like the
    wrapped check.

    Parameters
    ----------
    inner:
        The check to repeat.
    attempts:
        Maximum number of checks (>= 1).
    interval_seconds:
        Pause between checks.
    sleep:
        Injected for tests.
    """

    def __init__(
        self,
        inner: HealthCheck,
        attempts: int = 1,
        interval_seconds: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self.inner = inner
        self.attempts = attempts
        self.interval_seconds = interval_seconds
        self._sleep = sleep

    def check(self) -> ProbeResult:
        result = self.inner.check()
        for attempt in range(2, self.attempts + 1):
            if result.ok:
                break
            logger.info(
                "Probe attempt %d/%d failed (status %s), retrying in %.1fs",
                attempt - 1, self.attempts, result.status_code, self.interval_seconds,
            )
            self._sleep(self.interval_seconds)
            result = self.inner.check()
        return result
