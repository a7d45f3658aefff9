"""Heuristics applied to fallback line matches.

Fallback matches carry no extractor metadata, so container and entity name
are guessed from the path and the line. Results built from these guesses
are always tagged ``source="fallback"``.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from pathlib import PurePosixPath
from typing import Protocol, TypeVar

from contextdex.config.constants import (
    DEFINITION_KEYWORDS,
    FALLBACK_BASE_SCORE,
    FALLBACK_DEFINITION_BONUS,
    FALLBACK_LONG_LINE_PENALTY,
    FALLBACK_PRIMARY_DIR_BONUS,
    FALLBACK_TEST_DIR_PENALTY,
)
from contextdex.index.naming import container_from_path

_KEYWORD_ALT = "|".join(sorted(DEFINITION_KEYWORDS, key=len, reverse=True))
_DEFINITION_LINE = re.compile(rf"\b(?:{_KEYWORD_ALT})\s")
_CALLABLE_NAMES = "|".join(sorted((k for k in DEFINITION_KEYWORDS if k != "defmodule"), key=len, reverse=True))
_DEFINED_NAME = re.compile(rf"\b(?:{_CALLABLE_NAMES})\s+([a-z_][a-zA-Z0-9_]*[?!]?)")


class _Located(Protocol):
    path: str
    start_line: int


_T = TypeVar("_T", bound=_Located)


def derive_container(
    path: str,
    source_dirs: Sequence[str] = ("lib",),
    extensions: Sequence[str] = (".ex",),
) -> str:
    return container_from_path(path, source_dirs, extensions, default="Unknown")


def derive_entity_name(line: str) -> str | None:
    """Name defined on a line like ``def validate(user) do``, if any."""
    match = _DEFINED_NAME.search(line)
    return match.group(1) if match else None


def is_definition_line(line: str) -> bool:
    return _DEFINITION_LINE.search(line) is not None


def score_match(
    path: str,
    line: str,
    primary_dirs: Sequence[str] = ("lib",),
    test_dirs: Sequence[str] = ("test",),
    long_line_threshold: int = 200,
) -> int:
    """Relevance of a fallback match.

    Base 100; +50 on a definition line, +20 under a primary source dir,
    -10 under a test dir, -20 when the line exceeds the threshold.
    """
    score = FALLBACK_BASE_SCORE
    dirs = set(PurePosixPath(path).parts[:-1])

    if is_definition_line(line):
        score += FALLBACK_DEFINITION_BONUS
    if dirs.intersection(primary_dirs):
        score += FALLBACK_PRIMARY_DIR_BONUS
    if dirs.intersection(test_dirs):
        score -= FALLBACK_TEST_DIR_PENALTY
    if len(line) > long_line_threshold:
        score -= FALLBACK_LONG_LINE_PENALTY
    return score


def dedupe_results(results: Iterable[_T]) -> list[_T]:
    """Drop later results at an already seen (path, start_line)."""
    seen: set[tuple[str, int]] = set()
    unique: list[_T] = []
    for result in results:
        key = (result.path, result.start_line)
        if key in seen:
            continue
        seen.add(key)
        unique.append(result)
    return unique
