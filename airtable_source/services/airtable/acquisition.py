"""
Airtable acquisition stage.

Fetches every configured table, page by page, strictly in configuration order.
A failing page never aborts the run: the table keeps the records fetched so
far, is flagged ``partial``, and acquisition moves on to the next table.

Every table fetch is tracked with status, page count, record count, timing and
error details, and the collected records become the new ``PluginContext``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TypedDict

from airtable_source.config import PluginOptions
from airtable_source.core.host import LogFn
from airtable_source.core.plugin_context import PluginContext, Record
from airtable_source.services.airtable.client import AirtableAPIError, AirtableClient
from airtable_source.utils import utcnow

logger = logging.getLogger(__name__)


def _noop(message: str, *args: Any) -> None:
    pass


# ---------------------------------------------------------------------------
# Per-table result tracking
# ---------------------------------------------------------------------------

class TableFetchResult(TypedDict, total=False):
    """Structured metadata for one table fetch."""
    table: str
    status: str          # "success" | "partial"
    partial: bool        # True when a page failed and fetching stopped early
    page_count: int      # pages received before completion / failure
    record_count: int
    error_message: str   # error details if partial
    http_status: int     # HTTP status code (if available)
    duration_ms: int


@dataclass
class AcquisitionResult:
    context: PluginContext
    tables: List[TableFetchResult] = field(default_factory=list)
    from_cache: bool = False

    @property
    def partial_tables(self) -> List[str]:
        return [t["table"] for t in self.tables if t.get("partial")]


async def fetch_table(
    client: AirtableClient,
    table: str,
    *,
    view: Optional[str] = None,
    fields: Optional[List[str]] = None,
    debug: LogFn = _noop,
) -> tuple[List[Record], List[str], TableFetchResult]:
    """Fetch all pages of one table. Returns (records, record_ids, result)."""
    t0 = time.monotonic()
    records: List[Record] = []
    record_ids: List[str] = []
    result: TableFetchResult = {"table": table, "status": "success", "partial": False, "page_count": 0}

    try:
        async for page in client.list_record_pages(table, view=view, fields=fields):
            result["page_count"] += 1
            for record in page:
                records.append(dict(record.fields))
                record_ids.append(record.id)
                debug("Retrieved %s", record.fields)
    except asyncio.CancelledError:
        raise
    except AirtableAPIError as e:
        logger.warning(
            f"Fetching table '{table}' stopped after {result['page_count']} pages: {e.message}"
        )
        result["status"] = "partial"
        result["partial"] = True
        result["error_message"] = e.message
        if e.status_code is not None:
            result["http_status"] = e.status_code

    result["record_count"] = len(records)
    result["duration_ms"] = int((time.monotonic() - t0) * 1000)
    return records, record_ids, result


async def run_acquisition(
    *,
    options: PluginOptions,
    previous: Optional[PluginContext] = None,
    client: Optional[AirtableClient] = None,
    log: LogFn = _noop,
    debug: LogFn = _noop,
) -> AcquisitionResult:
    """
    Fetch every configured table into a fresh ``PluginContext``.

    Args:
        options: Resolved plugin options (credentials, base, tables, view).
        previous: The context currently cached for this plugin, if any.
        client: Client to use; one is created from ``options`` (and closed) if missing.
        log: Host log callback (summary lines).
        debug: Host debug callback (per-record progress).

    Returns:
        AcquisitionResult with the new context and per-table fetch results.
    """
    if options.reuse_cache and previous is not None and not previous.is_empty:
        if previous.matches(options.base_id, options.table_names):
            log(f"Loaded {previous.record_count} entries from cache")
            return AcquisitionResult(context=previous, from_cache=True)
        log("Cached entries do not match the configured base and tables, refetching")

    if client is None:
        async with AirtableClient(options.api_key, options.base_id) as owned:
            return await run_acquisition(
                options=options, previous=None, client=owned, log=log, debug=debug
            )

    entries: Dict[str, List[Record]] = {}
    record_ids: Dict[str, List[str]] = {}
    failures: Dict[str, str] = {}
    results: List[TableFetchResult] = []

    for table in options.table_names:
        records, ids, result = await fetch_table(
            client,
            table,
            view=options.view,
            fields=options.table_fields(table),
            debug=debug,
        )
        entries[table] = records
        record_ids[table] = ids
        results.append(result)
        if result["partial"]:
            failures[table] = result.get("error_message", "unknown error")
            log(f"Table '{table}' incomplete: {failures[table]}")

    context = PluginContext(
        entries=entries,
        record_ids=record_ids,
        failures=failures,
        base_id=options.base_id,
        fetched_at=utcnow(),
    )

    log(f"Generated {len(entries)} tables")
    debug("Initial entries: %s", entries)
    return AcquisitionResult(context=context, tables=results)
