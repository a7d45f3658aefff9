"""Structural entity index: models, extraction and the transactional store."""

from contextdex.index.extractor import CodebaseExtractor, CommandExtractor, Extractor
from contextdex.index.models import EdgeKind, Entity, EntityKind, entity_id, qualified_reference
from contextdex.index.pipeline import IndexPipeline, PipelineResult
from contextdex.index.records import coerce_entities, merge_clauses, parse_ndjson
from contextdex.index.store import IndexHit, IndexStore, Neighbors, StoreStatus
from contextdex.index.templates import build_template_entity

__all__ = [
    "CodebaseExtractor",
    "CommandExtractor",
    "EdgeKind",
    "Entity",
    "EntityKind",
    "Extractor",
    "IndexHit",
    "IndexPipeline",
    "IndexStore",
    "Neighbors",
    "PipelineResult",
    "StoreStatus",
    "build_template_entity",
    "coerce_entities",
    "entity_id",
    "merge_clauses",
    "parse_ndjson",
    "qualified_reference",
]
