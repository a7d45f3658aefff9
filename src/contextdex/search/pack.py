"""Context packing: a compact text bundle of entities and their neighbours."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from contextdex.config.constants import PACK_NEIGHBOR_LIMIT, SEARCH_MAX_K
from contextdex.index.models import Entity
from contextdex.index.store import IndexStore


@dataclass
class ContextPack:
    text: str
    sources: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text, "sources": self.sources}


def _brief(entity: Entity) -> str:
    return f"{entity.reference} ({entity.path}:{entity.start_line})"


def _definition(entity: Entity) -> str:
    return entity.raw_text or entity.signature or ""


class ContextPacker:
    """Renders entities, selected by id or by query, for a caller's context window.

    Each entity is followed by the definitions of its 1-hop callees and
    callers. Every rendered location, neighbours included, is listed once
    in ``sources``.
    """

    def __init__(self, store: IndexStore, neighbor_limit: int = PACK_NEIGHBOR_LIMIT) -> None:
        self.store = store
        self.neighbor_limit = neighbor_limit

    def pack(
        self,
        ids: Sequence[str] | None = None,
        query: str | None = None,
        k: int = 10,
    ) -> ContextPack:
        """Pack by ids when given, otherwise by an index query. Neither gives an empty pack."""
        if ids:
            entities = self.store.get_entities(ids)
        elif query:
            hits = self.store.search(query, min(k, SEARCH_MAX_K))
            entities = self.store.get_entities([hit.entity.id for hit in hits])
        else:
            entities = []

        sections: list[str] = []
        sources: dict[tuple[str, int], dict[str, Any]] = {}

        def add_source(entity: Entity) -> None:
            sources.setdefault(
                (entity.path, entity.start_line),
                {
                    "path": entity.path,
                    "start_line": entity.start_line,
                    "end_line": entity.end_line or entity.start_line,
                },
            )

        for entity in entities:
            add_source(entity)
            text, neighbors = self._render(entity)
            sections.append(text)
            for neighbor in neighbors:
                add_source(neighbor)
        return ContextPack(text="".join(sections), sources=list(sources.values()))

    def _render(self, entity: Entity) -> tuple[str, list[Entity]]:
        lines = [
            f"### {entity.reference}",
            f"Path: {entity.path}:{entity.start_line}",
        ]
        if entity.spec:
            lines.append(f"Spec: {entity.spec}")
        if entity.doc:
            lines.append(f"Doc: {entity.doc}")
        lines.append(f"Definition: {_definition(entity)}")

        if self.neighbor_limit <= 0:
            return "\n".join(lines) + "\n\n", []

        neighbors = self.store.neighbors(entity.id, self.neighbor_limit)
        if neighbors.callees:
            lines.append("Calls: " + ", ".join(_brief(n) for n in neighbors.callees))
        if neighbors.callers:
            lines.append("Called by: " + ", ".join(_brief(n) for n in neighbors.callers))

        related = [*neighbors.callees, *neighbors.callers]
        for neighbor in related:
            lines.append("")
            lines.append(f"Neighbor: {neighbor.reference} at {neighbor.path}:{neighbor.start_line}")
            lines.append(_definition(neighbor))

        return "\n".join(lines) + "\n\n", related
