"""Entity extraction: external command for source files, in-process for templates.

The external command emits NDJSON on stdout, one entity per line, and is
run from the project root. A full scan runs it as configured; an
incremental batch appends the files flag and the relative paths.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import Protocol

import structlog

from contextdex.config.models import ExtractorConfig, IndexConfig
from contextdex.core.errors import ExtractionFailed
from contextdex.index.models import Entity
from contextdex.index.records import parse_ndjson
from contextdex.index.templates import build_template_entity

logger = structlog.get_logger()

_STDERR_TAIL_CHARS = 2000


class Extractor(Protocol):
    """Turns files into entity records."""

    async def extract(self, paths: Sequence[str | Path]) -> list[Entity]: ...

    async def extract_all(self) -> list[Entity]: ...


class CommandExtractor:
    """Runs the configured extractor command and parses its NDJSON output."""

    def __init__(self, root: Path, config: ExtractorConfig) -> None:
        self.root = root
        self.config = config

    @property
    def enabled(self) -> bool:
        return bool(self.config.command)

    async def extract_files(self, rel_paths: Sequence[str]) -> list[Entity]:
        if not rel_paths:
            return []
        return await self._run(
            [*self.config.command, self.config.files_flag, *rel_paths], require_records=True
        )

    async def extract_all(self, require_records: bool = False) -> list[Entity]:
        return await self._run(list(self.config.command), require_records=require_records)

    async def _run(self, argv: list[str], require_records: bool) -> list[Entity]:
        if not self.enabled:
            logger.debug("extractor_disabled")
            return []

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.root,
            )
        except OSError as e:
            raise ExtractionFailed.command_failed(argv, f"cannot start extractor: {e}") from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=self.config.timeout_sec
            )
        except TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise ExtractionFailed.command_failed(
                argv, f"timed out after {self.config.timeout_sec} seconds"
            ) from e

        stdout = stdout_bytes.decode(errors="replace")
        stderr = stderr_bytes.decode(errors="replace")

        if proc.returncode != 0:
            raise ExtractionFailed.command_failed(
                argv,
                stderr[-_STDERR_TAIL_CHARS:].strip() or f"exited with code {proc.returncode}",
                exit_code=proc.returncode,
            )

        entities = parse_ndjson(stdout, source="extractor")
        # Empty output for named files would purge them; abandon the batch instead
        if not entities and (require_records or stdout.strip()):
            raise ExtractionFailed.command_failed(argv, "output contained no parseable records")

        logger.debug("extractor_completed", records=len(entities), argv_len=len(argv))
        return entities


class CodebaseExtractor:
    """Routes files to the command or the template extractor by extension."""

    def __init__(
        self,
        root: Path,
        index_config: IndexConfig,
        extractor_config: ExtractorConfig,
    ) -> None:
        self.root = root
        self.index_config = index_config
        self.command = CommandExtractor(root, extractor_config)

    def relative(self, path: str | Path) -> str:
        """Project-relative POSIX form of a path."""
        p = Path(path)
        if p.is_absolute():
            try:
                p = p.relative_to(self.root)
            except ValueError:
                return p.as_posix()
        return p.as_posix()

    def is_template(self, rel_path: str) -> bool:
        return any(rel_path.endswith(ext) for ext in self.index_config.template_extensions)

    def is_source(self, rel_path: str) -> bool:
        return any(rel_path.endswith(ext) for ext in self.index_config.source_extensions)

    def is_indexed(self, rel_path: str) -> bool:
        return self.is_template(rel_path) or self.is_source(rel_path)

    def walk(self) -> Iterator[str]:
        """Indexed files under the root, skipping excluded dirs and symlinks."""
        excluded = set(self.index_config.excluded_dirs)
        for dirpath, dirnames, filenames in os.walk(self.root, followlinks=False):
            dirnames[:] = sorted(
                d for d in dirnames if d not in excluded and not os.path.islink(os.path.join(dirpath, d))
            )
            for filename in sorted(filenames):
                full = Path(dirpath) / filename
                if full.is_symlink():
                    continue
                rel = full.relative_to(self.root).as_posix()
                if self.is_indexed(rel):
                    yield rel

    async def extract(self, paths: Sequence[str | Path]) -> list[Entity]:
        """Entities for the given files. Missing and unindexed files are skipped."""
        sources: list[str] = []
        templates: list[str] = []
        for path in paths:
            rel = self.relative(path)
            if not (self.root / rel).is_file():
                continue
            if self.is_template(rel):
                templates.append(rel)
            elif self.is_source(rel):
                sources.append(rel)

        entities = await self.command.extract_files(sources)
        entities.extend(self._extract_templates(templates))
        return entities

    async def extract_all(self) -> list[Entity]:
        """Full scan: the command as configured plus every template in the tree."""
        files = list(self.walk())
        has_sources = any(self.is_source(rel) for rel in files)
        entities = await self.command.extract_all(require_records=has_sources)
        templates = [rel for rel in files if self.is_template(rel)]
        entities.extend(self._extract_templates(templates))
        return entities

    def _extract_templates(self, rel_paths: Sequence[str]) -> list[Entity]:
        entities: list[Entity] = []
        for rel in rel_paths:
            try:
                content = (self.root / rel).read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                raise ExtractionFailed.unreadable(rel, str(e)) from e
            entities.append(
                build_template_entity(
                    rel,
                    content,
                    source_dirs=self.index_config.primary_source_dirs,
                    extensions=self.index_config.template_extensions,
                )
            )
        return entities
