"""
Airtable normalization stage.

Turns the cached ``table → records`` mapping into one schema descriptor per
table plus a flat list of normalized entries, and appends both to the
pipeline's accumulating data. Inputs are never mutated; a new data dict is
returned. No deduplication happens, so calling this twice over the same
context doubles the appended entries.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from airtable_source.config import FieldNamesMode, IdPolicy
from airtable_source.core.host import PipelineData
from airtable_source.core.plugin_context import PluginContext, Record
from airtable_source.schemas.pipeline import SchemaDescriptor
from airtable_source.utils import positional_id

logger = logging.getLogger(__name__)

METADATA_KEY = "__metadata"


def collect_field_names(records: List[Record], mode: FieldNamesMode = "first_record") -> List[str]:
    """Ordered field names for a table.

    ``first_record`` looks at the first record only, so fields that appear only
    in later records are missing from the result. ``union`` collects every key
    in order of first appearance.
    """
    if not records:
        return []
    if mode == "first_record":
        return list(records[0].keys())
    if mode != "union":
        raise ValueError(f"Unknown field names mode: {mode}")

    seen: Dict[str, None] = {}
    for record in records:
        for key in record:
            seen.setdefault(key, None)
    return list(seen)


def build_models(
    context: PluginContext,
    *,
    source: str,
    project_id: str,
    field_names_mode: FieldNamesMode = "first_record",
) -> Dict[str, Dict[str, Any]]:
    """Build one wire-format schema descriptor per cached table, keyed by table name."""
    models: Dict[str, Dict[str, Any]] = {}
    for table, records in context.entries.items():
        models[table] = SchemaDescriptor(
            source=source,
            model_name=table,
            model_label=table,
            project_id=project_id,
            field_names=collect_field_names(records, field_names_mode),
        ).to_wire()
    return models


def _entry_id(
    policy: IdPolicy,
    *,
    base_id: str,
    table: str,
    index: int,
    record_ids: Optional[List[str]],
    sequence: int,
) -> Any:
    if policy == "sequence":
        return sequence
    if policy == "record" and record_ids is not None and index < len(record_ids):
        return record_ids[index]
    if policy in ("record", "positional"):
        return positional_id(base_id, table, index)
    raise ValueError(f"Unknown id policy: {policy}")


def next_sequence(objects: List[Dict[str, Any]]) -> int:
    """First sequence id that cannot collide with an integer id already in ``objects``."""
    taken = [
        obj["id"] for obj in objects
        if isinstance(obj.get("id"), int) and not isinstance(obj.get("id"), bool)
    ]
    return max(len(objects), max(taken, default=-1) + 1)


def normalize_entries(
    context: PluginContext,
    models: Dict[str, Dict[str, Any]],
    *,
    base_id: str,
    id_policy: IdPolicy = "record",
    start_sequence: int = 0,
) -> List[Dict[str, Any]]:
    """Flatten cached records into entries tagged with an ``id`` and their table's model.

    Entries keep table order, then record order. The synthetic ``id`` wins over
    a record field of the same name.
    """
    entries: List[Dict[str, Any]] = []
    for table, records in context.entries.items():
        model = models[table]
        record_ids = context.record_ids.get(table)
        for index, record in enumerate(records):
            entries.append({
                **record,
                "id": _entry_id(
                    id_policy,
                    base_id=base_id,
                    table=table,
                    index=index,
                    record_ids=record_ids,
                    sequence=start_sequence + len(entries),
                ),
                METADATA_KEY: model,
            })
    return entries


def normalize(
    data: PipelineData,
    context: PluginContext,
    *,
    source: str,
    base_id: str,
    field_names_mode: FieldNamesMode = "first_record",
    id_policy: IdPolicy = "record",
) -> PipelineData:
    """Return a new pipeline data dict with this plugin's models and objects appended."""
    prior_models = list(data.get("models") or [])
    prior_objects = list(data.get("objects") or [])

    models = build_models(
        context, source=source, project_id=base_id, field_names_mode=field_names_mode
    )
    entries = normalize_entries(
        context,
        models,
        base_id=base_id,
        id_policy=id_policy,
        start_sequence=next_sequence(prior_objects),
    )
    logger.debug(f"Normalized {len(entries)} entries across {len(models)} tables")

    return {
        **data,
        "models": prior_models + list(models.values()),
        "objects": prior_objects + entries,
    }
