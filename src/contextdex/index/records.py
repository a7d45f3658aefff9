"""Extractor record parsing and clause merging.

Extractor output is NDJSON, one entity per line. A malformed line is a
local failure: it is logged with its line number and skipped so that one
bad record never aborts a batch.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

import structlog
from pydantic import ValidationError

from contextdex.core.errors import RecordMalformed
from contextdex.index.models import Entity

logger = structlog.get_logger()

Record = Entity | Mapping[str, Any] | str


def _log_malformed(error: RecordMalformed) -> None:
    logger.warning(
        "record_malformed",
        line=error.details.get("line"),
        source=error.details.get("source"),
        reason=error.details.get("reason"),
    )


def _validate(data: Any, line_number: int | None, source: str | None) -> Entity | None:
    if not isinstance(data, Mapping):
        _log_malformed(
            RecordMalformed.at_line(line_number, f"expected object, got {type(data).__name__}", source)
        )
        return None
    try:
        return Entity.model_validate(data)
    except ValidationError as e:
        fields = ",".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        _log_malformed(RecordMalformed.at_line(line_number, f"invalid fields: {fields}", source))
        return None


def parse_line(line: str, line_number: int | None = None, source: str | None = None) -> Entity | None:
    """Parse one NDJSON line. Returns None for blank or malformed lines."""
    stripped = line.strip()
    if not stripped:
        return None
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as e:
        _log_malformed(RecordMalformed.at_line(line_number, f"invalid JSON: {e.msg}", source))
        return None
    return _validate(data, line_number, source)


def parse_ndjson(text: str, source: str | None = None) -> list[Entity]:
    """Parse an NDJSON document, skipping malformed lines."""
    entities: list[Entity] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        entity = parse_line(line, line_number, source)
        if entity is not None:
            entities.append(entity)
    return entities


def coerce_entities(records: Iterable[Record]) -> list[Entity]:
    """Turn a mixed batch of Entity objects, mappings and NDJSON lines into Entities."""
    entities: list[Entity] = []
    for position, record in enumerate(records, start=1):
        if isinstance(record, Entity):
            entities.append(record)
        elif isinstance(record, str):
            entity = parse_line(record, position)
            if entity is not None:
                entities.append(entity)
        else:
            entity = _validate(record, position, None)
            if entity is not None:
                entities.append(entity)
    return entities


def merge_clauses(entities: Iterable[Entity]) -> list[Entity]:
    """Collapse records sharing an id into one entity.

    start_line is the minimum, end_line the maximum, references the
    order-preserving union. Every other field comes from the earliest clause.
    Output keeps first-seen order.
    """
    merged: dict[str, Entity] = {}
    for entity in entities:
        existing = merged.get(entity.id)
        if existing is None:
            merged[entity.id] = entity
            continue

        # Earliest clause by start line owns the scalar fields
        base = existing if existing.start_line <= entity.start_line else entity
        references = list(dict.fromkeys([*existing.references, *entity.references]))
        merged[entity.id] = base.model_copy(
            update={
                "start_line": min(existing.start_line, entity.start_line),
                "end_line": max(existing.end_line or 0, entity.end_line or 0),
                "references": references,
            }
        )
    return list(merged.values())
