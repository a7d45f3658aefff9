"""Hybrid search and context packing."""

from contextdex.search.fallback import FallbackMatch, RipgrepSearcher
from contextdex.search.hybrid import HybridSearchEngine, SearchResult
from contextdex.search.pack import ContextPack, ContextPacker

__all__ = [
    "ContextPack",
    "ContextPacker",
    "FallbackMatch",
    "HybridSearchEngine",
    "RipgrepSearcher",
    "SearchResult",
]
