"""Application context for MCP handlers.

Single object passed to all tool handlers with access to the index,
search and scheduling components.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from contextdex.config.models import ContextdexConfig
    from contextdex.daemon.scheduler import WatchScheduler
    from contextdex.index.pipeline import IndexPipeline
    from contextdex.index.store import IndexStore
    from contextdex.search.hybrid import HybridSearchEngine
    from contextdex.search.pack import ContextPacker


@dataclass
class AppContext:
    """Context object passed to all MCP tool handlers.

    ``scheduler`` is set only while a watcher-driven server runs; tools
    fall back to the pipeline when it is absent.
    """

    repo_root: Path
    config: ContextdexConfig
    store: IndexStore
    engine: HybridSearchEngine
    packer: ContextPacker
    pipeline: IndexPipeline
    scheduler: WatchScheduler | None = None

    @classmethod
    def create(cls, repo_root: Path, config: ContextdexConfig) -> AppContext:
        """Factory to create context with all components wired together."""
        from contextdex.config.loader import get_index_path
        from contextdex.index.extractor import CodebaseExtractor
        from contextdex.index.pipeline import IndexPipeline
        from contextdex.index.store import IndexStore
        from contextdex.search.fallback import RipgrepSearcher
        from contextdex.search.hybrid import HybridSearchEngine
        from contextdex.search.pack import ContextPacker

        store = IndexStore(get_index_path(repo_root, config), config.database)
        extractor = CodebaseExtractor(repo_root, config.index, config.extractor)
        fallback = RipgrepSearcher(
            repo_root,
            config.fallback,
            extensions=config.index.indexed_extensions,
            excluded_dirs=config.index.excluded_dirs,
            primary_dirs=config.index.primary_source_dirs,
        )
        engine = HybridSearchEngine(store, config.search, config.index, fallback=fallback)

        return cls(
            repo_root=repo_root,
            config=config,
            store=store,
            engine=engine,
            packer=ContextPacker(store),
            pipeline=IndexPipeline(extractor, store),
        )
