"""airtable-source command line interface.

A minimal stand-in for the host pipeline: ``fetch`` runs the plugin lifecycle
and writes the pipeline data as JSON, ``setup`` runs the interactive
configuration flow and writes the derived options.
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import aiofiles
import typer
from rich.console import Console

from airtable_source.config import API_KEY_ENV, PluginConfigError, PluginOptions, resolve_options, settings
from airtable_source.core.host import empty_pipeline_data, make_log_callbacks
from airtable_source.core.plugin_context import PluginContextStore
from airtable_source.core.task_registry import task_registry
from airtable_source.plugin import (
    NAME,
    bootstrap,
    get_options_from_setup,
    get_setup,
    transform,
)
from airtable_source.services.setup.questions import ask

logger = logging.getLogger(__name__)


class WatchError(Exception):
    """Raised when the watch-mode poller dies."""


app = typer.Typer(
    name="airtable-source",
    help="Fetch Airtable tables as normalized pipeline data.",
    no_args_is_help=True,
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _read_config(path: Path) -> dict[str, Any]:
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise PluginConfigError(f"Config file not found: {path}") from None
    except json.JSONDecodeError as e:
        raise PluginConfigError(f"Config file {path} is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise PluginConfigError(f"Config file {path} must contain a JSON object of plugin options")
    return raw


async def _write_json(path: Path, payload: Any) -> None:
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(json.dumps(payload, indent=2, default=str))


async def _run_fetch(options: PluginOptions, output: Path, cache_path: Optional[str]) -> None:
    store = PluginContextStore(cache_path)
    await store.load()
    get_context, set_context = store.accessors(NAME)
    log, debug = make_log_callbacks(NAME)
    refreshed = asyncio.Event()

    async def emit() -> None:
        await store.save()
        data = transform(
            data=empty_pipeline_data(), get_plugin_context=get_context, options=options, debug=debug
        )
        await _write_json(output, data)
        log(f"Wrote {len(data['objects'])} objects to {output}")

    poller = await bootstrap(
        options=options,
        get_plugin_context=get_context,
        set_plugin_context=set_context,
        log=log,
        debug=debug,
        refresh=refreshed.set,
    )
    await emit()
    if poller is None:
        return

    try:
        while True:
            waiter = asyncio.ensure_future(refreshed.wait())
            done, _ = await asyncio.wait({waiter, poller}, return_when=asyncio.FIRST_COMPLETED)
            if poller in done:
                waiter.cancel()
                if poller.cancelled():
                    return
                exc = poller.exception()
                raise WatchError(f"Watch poller stopped: {exc}") from exc
            refreshed.clear()
            await emit()
    finally:
        await task_registry.cancel_all()


@app.command()
def fetch(
    config: str = typer.Option(..., "--config", "-c", help="Path to plugin options JSON file."),
    output: str = typer.Option("data.json", "--output", "-o", help="Where to write pipeline data."),
    watch: bool = typer.Option(False, "--watch", "-w", help="Keep polling and rewrite output on changes."),
    cache: Optional[str] = typer.Option(None, "--cache", help="Plugin context cache file."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output."),
) -> None:
    """Fetch configured tables and write normalized models/objects."""
    _configure_logging(verbose)
    try:
        options = resolve_options(
            _read_config(Path(config).expanduser()),
            runtime_params={"watch": True} if watch else None,
        )
    except PluginConfigError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None

    try:
        asyncio.run(_run_fetch(options, Path(output).expanduser(), cache or settings.cache_path))
    except WatchError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        typer.echo("Stopped watching")


async def _run_setup(known: dict[str, Any], output: Path, console: Console) -> dict[str, Any]:
    result = get_setup(options=known, console=console)
    answers = await result() if callable(result) else await ask(result)
    if not answers:
        raise typer.Abort()
    if answers.get("apiKey"):
        console.print(f"[yellow]Add the API key to your environment as {API_KEY_ENV}; it is not written to {output}[/yellow]")

    options = {**known, **get_options_from_setup(answers=answers)}
    options.pop("apiKey", None)
    await _write_json(output, options)
    return options


@app.command()
def setup(
    output: str = typer.Option("airtable-source.json", "--output", "-o", help="Options file to write."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Existing options to start from."),
    base_id: Optional[str] = typer.Option(None, "--base-id", help="Airtable base id (enables table discovery)."),
) -> None:
    """Interactively build a plugin options file."""
    _configure_logging(False)
    console = Console()
    try:
        known = _read_config(Path(config).expanduser()) if config else {}
    except PluginConfigError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from None
    if base_id:
        known["baseId"] = base_id

    output_path = Path(output).expanduser()
    options = asyncio.run(_run_setup(known, output_path, console))
    console.print(f"[green]✓[/green] Wrote {len(options)} options to {output_path}")


if __name__ == "__main__":
    app()
