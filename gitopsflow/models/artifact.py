"""Container image artifact model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Artifact(BaseModel):
    """A built container image identified by two tags.

    ``tag_latest`` is a mutable pointer moved on every publish;
    ``tag_commit`` is set once per build from the trigger commit.
    """

    model_config = ConfigDict(frozen=True)

    repository: str  # registry host and namespace, e.g. "docker.io/acme"
    name: str
    tag_commit: str = Field(min_length=1)
    tag_latest: str = "latest"

    def reference(self, tag: str) -> str:
        """Return the full image reference ``<repository>/<name>:<tag>``."""
        return f"{self.repository}/{self.name}:{tag}"

    @property
    def latest_ref(self) -> str:
        return self.reference(self.tag_latest)

    @property
    def commit_ref(self) -> str:
        return self.reference(self.tag_commit)

    @property
    def refs(self) -> list[str]:
        """Both references, in the order they are published."""
        return [self.latest_ref, self.commit_ref]
