"""Deployment Descriptor — the tracked manifest that names the desired image.

The descriptor is a line-oriented text file (a Kubernetes manifest in
practice) containing at least one line of the form::

    image: <repository>/<name>:<tag>

Updating it replaces ``<tag>`` on the matching line(s) and leaves every
other byte untouched, so the reconciliation system downstream sees a
one-line diff.

Writes go through a compare-and-swap against the revision read at the
start of the update: if another writer changed the file in between, the
update is refused instead of silently clobbering the other tag.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
import threading
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from gitopsflow.core.errors import DescriptorConflictError, DescriptorUpdateError
from gitopsflow.core.hasher import content_revision

logger = logging.getLogger(__name__)

# Serialises every descriptor write in this process.
_WRITE_LOCK = threading.Lock()


class DescriptorSnapshot(BaseModel):
    """Contents of the descriptor at one point in time."""

    model_config = ConfigDict(frozen=True)

    path: Path
    data: bytes
    revision: str


class DescriptorRewrite(BaseModel):
    """Result of rewriting the image tag in descriptor text."""

    model_config = ConfigDict(frozen=True)

    text: str
    changed_lines: list[int]  # 1-based line numbers
    previous_tags: list[str]

    @property
    def changed(self) -> bool:
        return bool(self.changed_lines)


def _image_line_pattern(repository: str, name: str) -> re.Pattern[str]:
    # Optional list marker, optional quoting, tag up to quote/space/comment.
    return re.compile(
        r"^(?P<prefix>\s*(?:-\s+)?image:\s*[\"']?"
        + re.escape(f"{repository}/{name}:")
        + r")(?P<tag>[^\s\"'#]+)(?P<suffix>.*)$"
    )


def _split_line_ending(line: str) -> tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def find_image_tag(text: str, repository: str, name: str) -> str | None:
    """Return the tag of the first ``image:`` line for *name*, or None."""
    pattern = _image_line_pattern(repository, name)
    for line in text.splitlines():
        match = pattern.match(line)
        if match:
            return match.group("tag")
    return None


def rewrite_image_tag(
    text: str, repository: str, name: str, tag: str
) -> DescriptorRewrite:
    """Point every image line for *repository*/*name* at *tag*.

    Lines that do not match, and the line endings of matching lines, are
    kept byte-identical. Lines already at *tag* are not reported as changed.

    Raises ``DescriptorUpdateError`` if no line references the image.
    """
    if not tag or any(ch.isspace() for ch in tag):
        raise DescriptorUpdateError(f"Invalid image tag {tag!r}")

    pattern = _image_line_pattern(repository, name)
    out: list[str] = []
    changed: list[int] = []
    previous: list[str] = []
    matched = False

    for lineno, line in enumerate(text.splitlines(keepends=True), start=1):
        body, ending = _split_line_ending(line)
        match = pattern.match(body)
        if match is None:
            out.append(line)
            continue
        matched = True
        old_tag = match.group("tag")
        if old_tag == tag:
            out.append(line)
            continue
        previous.append(old_tag)
        changed.append(lineno)
        out.append(f"{match.group('prefix')}{tag}{match.group('suffix')}{ending}")

    if not matched:
        raise DescriptorUpdateError(
            f"No 'image: {repository}/{name}:<tag>' line found in descriptor"
        )

    return DescriptorRewrite(
        text="".join(out), changed_lines=changed, previous_tags=previous
    )


class DeploymentDescriptor:
    """File-backed Deployment Descriptor with compare-and-swap writes.

    Parameters
    ----------
    path:
        Path to the manifest file.
    repository:
        Registry host and namespace the image lives under.
    name:
        Image name whose tag is managed.
    """

    def __init__(self, path: Path, repository: str, name: str) -> None:
        self.path = Path(path)
        self.repository = repository
        self.name = name

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> DescriptorSnapshot:
        """Read the descriptor and its revision."""
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            raise DescriptorUpdateError(
                f"Cannot read descriptor {self.path}: {exc}"
            ) from exc
        return DescriptorSnapshot(
            path=self.path, data=data, revision=content_revision(data)
        )

    def current_tag(self) -> str | None:
        """The tag the descriptor currently points at."""
        text = self.snapshot().data.decode("utf-8")
        return find_image_tag(text, self.repository, self.name)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def render(self, snapshot: DescriptorSnapshot, tag: str) -> DescriptorRewrite:
        """Compute the rewritten text for *snapshot* without writing it."""
        try:
            text = snapshot.data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DescriptorUpdateError(
                f"Descriptor {self.path} is not UTF-8 text"
            ) from exc
        return rewrite_image_tag(text, self.repository, self.name, tag)

    def apply(self, tag: str, expected_revision: str) -> DescriptorRewrite:
        """Rewrite the image tag, provided the file is still at *expected_revision*.

        Raises ``DescriptorConflictError`` if the file changed since it was
        read, and ``DescriptorUpdateError`` if it has no matching image line.
        """
        with _WRITE_LOCK:
            current = self.snapshot()
            if current.revision != expected_revision:
                raise DescriptorConflictError(
                    f"Descriptor {self.path} changed since it was read "
                    f"(expected {expected_revision[:19]}, found {current.revision[:19]})"
                )
            rewrite = self.render(current, tag)
            if rewrite.changed:
                self._write_atomic(rewrite.text.encode("utf-8"))
                logger.info(
                    "Descriptor %s: %s/%s -> %s (lines %s)",
                    self.path,
                    self.repository,
                    self.name,
                    tag,
                    ",".join(str(n) for n in rewrite.changed_lines),
                )
            return rewrite

    def restore(self, snapshot: DescriptorSnapshot) -> None:
        """Write the bytes of *snapshot* back, undoing a local rewrite."""
        with _WRITE_LOCK:
            self._write_atomic(snapshot.data)
        logger.info("Descriptor %s restored to %s", self.path, snapshot.revision[:19])

    def _write_atomic(self, data: bytes) -> None:
        directory = self.path.parent
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", dir=directory
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
            if self.path.exists():
                os.chmod(tmp_name, self.path.stat().st_mode & 0o7777)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            Path(tmp_name).unlink(missing_ok=True)
            raise DescriptorUpdateError(
                f"Cannot write descriptor {self.path}: {exc}"
            ) from exc
