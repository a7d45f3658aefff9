"""Hybrid search: full-text index first, ripgrep when the index comes up short.

Index results always precede fallback results, so when both land on the
same (path, start_line) the extractor-verified index result is kept.
"""

from __future__ import annotations

import asyncio
from dataclasses import asdict, dataclass
from typing import Any

import structlog

from contextdex.config.constants import SEARCH_MAX_K
from contextdex.config.models import IndexConfig, SearchConfig
from contextdex.core.errors import FallbackUnavailable
from contextdex.index.models import EntityKind
from contextdex.index.store import IndexHit, IndexStore
from contextdex.search.fallback import FallbackMatch, RipgrepSearcher
from contextdex.search.heuristics import dedupe_results, derive_container, derive_entity_name

logger = structlog.get_logger()

SOURCE_INDEX = "index"
SOURCE_TEMPLATE = "template"
SOURCE_FALLBACK = "fallback"


@dataclass
class SearchResult:
    """One ranked answer. Fallback results have no id and no arity."""

    id: str | None
    container: str
    name: str | None
    arity: int | None
    kind: str | None
    path: str
    start_line: int
    end_line: int
    score: float
    source: str
    context: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def result_from_hit(hit: IndexHit) -> SearchResult:
    entity = hit.entity
    return SearchResult(
        id=entity.id,
        container=entity.container,
        name=entity.name,
        arity=entity.arity,
        kind=entity.kind.value,
        path=entity.path,
        start_line=entity.start_line,
        end_line=entity.end_line or entity.start_line,
        score=hit.score,
        source=SOURCE_TEMPLATE if entity.kind == EntityKind.TEMPLATE else SOURCE_INDEX,
        context=entity.signature,
    )


class HybridSearchEngine:
    """Merges index hits and fallback matches into one ranked list."""

    def __init__(
        self,
        store: IndexStore,
        search_config: SearchConfig,
        index_config: IndexConfig,
        fallback: RipgrepSearcher | None = None,
    ) -> None:
        self.store = store
        self.search_config = search_config
        self.index_config = index_config
        self.fallback = fallback

    async def search(
        self,
        query: str,
        k: int | None = None,
        use_fallback: bool | None = None,
    ) -> list[SearchResult]:
        """Ranked results for query, at most k.

        The fallback runs only when the index returns fewer than
        ``search.min_index_results`` hits. Fallback failures degrade to
        index-only results; store failures propagate.
        """
        if k is None:
            k = self.search_config.default_k
        if k <= 0:
            return []
        limit = min(k, SEARCH_MAX_K)
        if use_fallback is None:
            use_fallback = self.search_config.use_fallback

        hits = await asyncio.to_thread(self.store.search, query, limit)
        results = [result_from_hit(hit) for hit in hits]

        if (
            len(results) >= self.search_config.min_index_results
            or not use_fallback
            or self.fallback is None
        ):
            return results[:limit]

        try:
            matches = await self.fallback.search(query, limit)
        except FallbackUnavailable as e:
            logger.warning("fallback_unavailable", query=query, reason=e.details.get("reason"))
            return results[:limit]

        fallback_results = [self._result_from_match(m) for m in matches]
        merged = dedupe_results([*results, *fallback_results])
        logger.debug(
            "hybrid_search_merged",
            index=len(results),
            fallback=len(fallback_results),
            merged=len(merged),
        )
        return merged[:limit]

    def _result_from_match(self, match: FallbackMatch) -> SearchResult:
        return SearchResult(
            id=None,
            container=derive_container(
                match.path,
                self.index_config.primary_source_dirs,
                self.index_config.indexed_extensions,
            ),
            name=derive_entity_name(match.line_text),
            arity=None,
            kind=None,
            path=match.path,
            start_line=match.line_number,
            end_line=match.line_number,
            score=float(match.score),
            source=SOURCE_FALLBACK,
            context=match.line_text,
        )
