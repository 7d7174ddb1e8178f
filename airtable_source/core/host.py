"""Callback types the host pipeline passes into the plugin lifecycle."""
from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Union

from airtable_source.core.plugin_context import PluginContext

LogFn = Callable[..., None]
GetContextFn = Callable[[], PluginContext]
SetContextFn = Callable[[PluginContext], None]
RefreshFn = Callable[[], Union[None, Awaitable[None]]]
PipelineData = dict[str, Any]


def make_log_callbacks(plugin_name: str) -> tuple[LogFn, LogFn]:
    """Return ``(log, debug)`` callbacks backed by a logger named after the plugin.

    ``log`` messages carry the plugin name as a prefix; ``debug`` accepts
    %-style arguments and is only rendered when debug logging is enabled.
    """
    logger = logging.getLogger(f"airtable_source.plugins.{plugin_name}")

    def log(message: str, *args: Any) -> None:
        logger.info(f"[{plugin_name}] {message}", *args)

    def debug(message: str, *args: Any) -> None:
        logger.debug(f"[{plugin_name}] {message}", *args)

    return log, debug


def empty_pipeline_data() -> PipelineData:
    return {"models": [], "objects": []}
