"""Shared utility functions."""

import hashlib
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def positional_id(base_id: str, table: str, index: int) -> str:
    """Stable identifier for the ``index``-th record of ``table`` in ``base_id``."""
    digest = hashlib.sha1(f"{base_id}:{table}:{index}".encode("utf-8"))
    return digest.hexdigest()[:16]
