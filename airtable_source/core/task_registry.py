"""Background tasks owned by plugins (watch-mode pollers)."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from airtable_source.utils import utcnow

logger = logging.getLogger(__name__)


@dataclass
class TrackedTask:
    task: asyncio.Task
    plugin: Optional[str] = None
    started_at: datetime = field(default_factory=utcnow)


class TaskRegistry:
    """Named background tasks, at most one live task per name.

    A task that finishes or is cancelled drops out of the registry by itself;
    a task that crashes has its exception logged instead of lost.
    """

    def __init__(self):
        self._entries: dict[str, TrackedTask] = {}

    def create_task(self, coro, *, name: str, plugin: Optional[str] = None) -> asyncio.Task:
        """Start ``coro`` as ``name``, replacing a live task of the same name."""
        if self.cancel_task(name):
            logger.info(f"Replacing background task '{name}'")
        task = asyncio.create_task(coro, name=name)
        self._entries[name] = TrackedTask(task=task, plugin=plugin)
        task.add_done_callback(self._on_task_done)
        logger.debug(f"Started background task '{name}' for {plugin or 'host'}")
        return task

    def _on_task_done(self, task: asyncio.Task) -> None:
        name = task.get_name()
        entry = self._entries.get(name)
        if entry is not None and entry.task is task:
            del self._entries[name]

        if task.cancelled():
            logger.debug(f"Background task '{name}' stopped")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Background task '{name}' crashed: {exc}", exc_info=exc)

    def cancel_task(self, name: str) -> bool:
        """Request cancellation of ``name``. False if no live task has that name."""
        entry = self._entries.get(name)
        if entry is None or entry.task.done():
            return False
        entry.task.cancel()
        return True

    @property
    def active_tasks(self) -> dict[str, asyncio.Task]:
        return {name: entry.task for name, entry in self._entries.items()}

    async def cancel_all(self, timeout: float = 10.0) -> None:
        tasks = [entry.task for entry in self._entries.values() if not entry.task.done()]
        if not tasks:
            return
        for task in tasks:
            task.cancel()
        _, pending = await asyncio.wait(tasks, timeout=timeout)
        if pending:
            logger.warning(f"{len(pending)} background tasks still running after {timeout}s")


task_registry = TaskRegistry()
