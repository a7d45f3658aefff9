"""Extractor-to-store orchestration shared by the CLI, MCP tools and scheduler."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

import structlog

from contextdex.index.extractor import CodebaseExtractor
from contextdex.index.store import IndexStore

logger = structlog.get_logger()


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""

    mode: str  # "full" | "incremental"
    entities: int
    paths: int
    purged: int = 0


class IndexPipeline:
    """Runs the extractor and applies its output to the store."""

    def __init__(self, extractor: CodebaseExtractor, store: IndexStore) -> None:
        self.extractor = extractor
        self.store = store

    async def rebuild(self) -> PipelineResult:
        """Scan the whole codebase and replace the index."""
        entities = await self.extractor.extract_all()
        count = await asyncio.to_thread(self.store.rebuild_full, entities)
        paths = len({e.path for e in entities})
        logger.info("pipeline_rebuild_done", entities=count, paths=paths)
        return PipelineResult(mode="full", entities=count, paths=paths)

    async def update(self, paths: Sequence[str | Path]) -> PipelineResult:
        """Re-extract existing files and purge the ones that are gone."""
        rel_paths = sorted({self.extractor.relative(p) for p in paths})
        existing = [p for p in rel_paths if (self.extractor.root / p).is_file()]
        entities = await self.extractor.extract(existing)
        count = await asyncio.to_thread(self.store.merge_incremental, entities, rel_paths)
        logger.info("pipeline_update_done", entities=count, paths=len(rel_paths))
        return PipelineResult(mode="incremental", entities=count, paths=len(rel_paths))

    async def purge(self, path: str | Path) -> PipelineResult:
        rel = self.extractor.relative(path)
        removed = await asyncio.to_thread(self.store.purge_by_path, rel)
        return PipelineResult(mode="incremental", entities=0, paths=1, purged=removed)
