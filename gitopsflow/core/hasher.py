"""Hashing helpers for descriptor revisions."""

from __future__ import annotations

import hashlib


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def content_revision(data: bytes) -> str:
    """Revision identifier for a file's contents.

    Returns "sha256:<hex>". Two reads of an unchanged file always yield the
    same revision, which is what the descriptor compare-and-swap relies on.
    """
    return f"sha256:{sha256_hex(data)}"
