"""Content fingerprints used for change detection."""

from __future__ import annotations

import hashlib


def fingerprint(data: bytes) -> str:
    """Return the SHA-256 hex digest of *data*.

    Two blobs with the same fingerprint are treated as identical content.
    """
    return hashlib.sha256(data).hexdigest()
