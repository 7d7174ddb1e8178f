"""
Airtable source plugin: host lifecycle entry points.

  - bootstrap()              once at startup: fetch tables into the plugin context,
                             and in watch mode start a poller that re-fetches and
                             fires the host's refresh trigger
  - transform()              on startup and on every refresh: append models/objects
  - get_setup()              config authoring: questions or an interactive procedure
  - get_options_from_setup() config authoring: answers → persisted options
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Dict, Optional

from airtable_source.config import OPTIONS, PluginOptions
from airtable_source.core.host import (
    GetContextFn,
    LogFn,
    PipelineData,
    RefreshFn,
    SetContextFn,
)
from airtable_source.core.task_registry import TaskRegistry, task_registry
from airtable_source.services.airtable.acquisition import run_acquisition
from airtable_source.services.airtable.client import AirtableClient
from airtable_source.services.airtable.normalization import normalize
from airtable_source.services.setup.options import get_options_from_setup as _options_from_setup
from airtable_source.services.setup.questions import get_setup as _get_setup

logger = logging.getLogger(__name__)

NAME = "sourcebit-airtable-plugin"

__all__ = ["NAME", "OPTIONS", "bootstrap", "transform", "get_setup", "get_options_from_setup"]


def _noop(message: str, *args: Any) -> None:
    pass


def watch_task_name() -> str:
    return f"{NAME}-watch"


async def bootstrap(
    *,
    options: PluginOptions,
    get_plugin_context: GetContextFn,
    set_plugin_context: SetContextFn,
    log: LogFn = _noop,
    debug: LogFn = _noop,
    refresh: Optional[RefreshFn] = None,
    client: Optional[AirtableClient] = None,
    registry: TaskRegistry = task_registry,
) -> Optional[asyncio.Task]:
    """Fetch all configured tables into the plugin context.

    In watch mode a background task re-fetches every ``options.poll_interval``
    seconds, replaces the context, and calls ``refresh``. That task is returned
    so the caller can notice when it stops; otherwise None.
    """
    result = await run_acquisition(
        options=options,
        previous=get_plugin_context(),
        client=client,
        log=log,
        debug=debug,
    )
    if not result.from_cache:
        set_plugin_context(result.context)

    if not (options.watch and refresh is not None):
        return None

    poller = registry.create_task(
        _watch(options, set_plugin_context, refresh, log=log, debug=debug, client=client),
        name=watch_task_name(),
        plugin=NAME,
    )
    log(f"Watching {len(options.table_names)} tables every {options.poll_interval}s")
    return poller


async def _watch(
    options: PluginOptions,
    set_plugin_context: SetContextFn,
    refresh: RefreshFn,
    *,
    log: LogFn,
    debug: LogFn,
    client: Optional[AirtableClient] = None,
) -> None:
    # Cache reuse would turn every poll into a no-op
    poll_options = options.model_copy(update={"reuse_cache": False})
    while True:
        await asyncio.sleep(options.poll_interval)
        result = await run_acquisition(options=poll_options, client=client, log=log, debug=debug)
        set_plugin_context(result.context)
        outcome = refresh()
        if inspect.isawaitable(outcome):
            await outcome


def transform(
    *,
    data: PipelineData,
    get_plugin_context: GetContextFn,
    options: PluginOptions,
    debug: LogFn = _noop,
) -> PipelineData:
    """Append this plugin's models and objects to the pipeline data (inputs untouched)."""
    context = get_plugin_context()
    new_data = normalize(
        data,
        context,
        source=NAME,
        base_id=options.base_id,
        field_names_mode=options.field_names_mode,
        id_policy=options.id_policy,
    )
    debug(
        "Transformed %d tables into %d objects",
        len(context.entries),
        len(new_data["objects"]) - len(data.get("objects") or []),
    )
    return new_data


def get_setup(**kwargs: Any):
    """See ``services.setup.questions.get_setup``."""
    return _get_setup(**kwargs)


def get_options_from_setup(*, answers: Dict[str, Any], **_: Any) -> Dict[str, Any]:
    """See ``services.setup.options.get_options_from_setup``."""
    return _options_from_setup(answers)
