"""Liveness probe result."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

# Status code recorded when no HTTP response was received at all.
UNREACHABLE_STATUS = 0


class ProbeResult(BaseModel):
    """Outcome of one health check against the test instance.

    Only used to gate the steps after testing; never stored.
    """

    model_config = ConfigDict(frozen=True)

    url: str
    status_code: int = UNREACHABLE_STATUS
    reachable: bool = False
    detail: str = ""
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status_code == 200

    @classmethod
    def unreachable(cls, url: str, detail: str) -> ProbeResult:
        return cls(url=url, status_code=UNREACHABLE_STATUS, reachable=False, detail=detail)
