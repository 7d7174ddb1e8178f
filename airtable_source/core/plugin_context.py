"""PluginContext: per-plugin cache threaded between bootstrap and transform.

The acquisition stage is the only writer; transform reads one snapshot per
pipeline cycle. Contexts live in a ``PluginContextStore`` keyed by plugin name,
which can optionally be saved to / loaded from a JSON cache file.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

Record = dict[str, Any]


@dataclass(frozen=True)
class PluginContext:
    """Immutable snapshot of the last acquisition run."""

    # table name → records (field maps) in fetch order
    entries: dict[str, list[Record]] = field(default_factory=dict)
    # table name → remote record ids, aligned with ``entries``
    record_ids: dict[str, list[str]] = field(default_factory=dict)
    # table name → error message for tables whose fetch stopped early
    failures: dict[str, str] = field(default_factory=dict)
    # base the entries were fetched from
    base_id: Optional[str] = None
    fetched_at: Optional[datetime] = None

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def matches(self, base_id: str, tables: list[str]) -> bool:
        """True if this snapshot holds exactly ``tables`` fetched from ``base_id``."""
        return self.base_id == base_id and set(self.entries) == set(tables)

    @property
    def record_count(self) -> int:
        return sum(len(records) for records in self.entries.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": self.entries,
            "record_ids": self.record_ids,
            "failures": self.failures,
            "base_id": self.base_id,
            "fetched_at": self.fetched_at.isoformat() if self.fetched_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PluginContext":
        fetched_at = data.get("fetched_at")
        return cls(
            entries={k: list(v) for k, v in (data.get("entries") or {}).items()},
            record_ids={k: list(v) for k, v in (data.get("record_ids") or {}).items()},
            failures=dict(data.get("failures") or {}),
            base_id=data.get("base_id"),
            fetched_at=datetime.fromisoformat(fetched_at) if fetched_at else None,
        )


class PluginContextStore:
    """Process-scoped registry of plugin contexts, keyed by plugin name."""

    def __init__(self, cache_path: Optional[str] = None):
        self.cache_path = cache_path
        self._contexts: dict[str, PluginContext] = {}

    def get(self, plugin_name: str) -> PluginContext:
        """Return the plugin's context (an empty one if nothing was stored yet)."""
        return self._contexts.get(plugin_name, PluginContext())

    def set(self, plugin_name: str, context: PluginContext) -> None:
        self._contexts[plugin_name] = context

    def accessors(
        self, plugin_name: str
    ) -> tuple[Callable[[], PluginContext], Callable[[PluginContext], None]]:
        """Return ``(get_plugin_context, set_plugin_context)`` bound to one plugin."""
        return (
            lambda: self.get(plugin_name),
            lambda context: self.set(plugin_name, context),
        )

    async def load(self) -> int:
        """Load contexts from the cache file. Returns the number of plugins loaded."""
        if not self.cache_path or not await aiofiles.os.path.exists(self.cache_path):
            return 0
        async with aiofiles.open(self.cache_path, encoding="utf-8") as f:
            raw = json.loads(await f.read())
        for name, data in raw.items():
            self._contexts[name] = PluginContext.from_dict(data)
        logger.info(f"Loaded {len(raw)} plugin contexts from {self.cache_path}")
        return len(raw)

    async def save(self) -> None:
        if not self.cache_path:
            return
        payload = {name: ctx.to_dict() for name, ctx in self._contexts.items()}
        async with aiofiles.open(self.cache_path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(payload, default=str, indent=2))
        logger.debug(f"Saved {len(payload)} plugin contexts to {self.cache_path}")
