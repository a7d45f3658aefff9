"""Line-oriented fallback search backed by ripgrep.

ripgrep exit codes: 0 matches, 1 no matches, anything else is an error.
Errors, a missing executable and timeouts raise FallbackUnavailable.
"""

from __future__ import annotations

import asyncio
import json
import shutil
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from contextdex.config.models import FallbackConfig
from contextdex.core.errors import FallbackUnavailable
from contextdex.search.heuristics import score_match

logger = structlog.get_logger()


@dataclass
class FallbackMatch:
    path: str
    line_number: int
    line_text: str
    score: int


class RipgrepSearcher:
    """Runs ripgrep over the project root, limited to indexed file types."""

    def __init__(
        self,
        root: Path,
        config: FallbackConfig,
        extensions: Sequence[str],
        excluded_dirs: Sequence[str] = (),
        primary_dirs: Sequence[str] = ("lib",),
    ) -> None:
        self.root = root
        self.config = config
        self.extensions = list(extensions)
        self.excluded_dirs = list(excluded_dirs)
        self.primary_dirs = list(primary_dirs)

    def build_args(self, executable: str, query: str) -> list[str]:
        args = [executable, "--json", "--max-count", str(self.config.max_count_per_file)]
        if self.config.smart_case:
            args.append("--smart-case")
        for ext in self.extensions:
            args.extend(["--glob", f"*{ext}"])
        for name in self.excluded_dirs:
            args.extend(["--glob", f"!**/{name}/**"])
        args.extend(["--", query, "."])
        return args

    async def search(self, query: str, limit: int) -> list[FallbackMatch]:
        """Matches for query, best scored first, at most ``limit``."""
        executable = shutil.which(self.config.executable)
        if executable is None:
            raise FallbackUnavailable.because(f"executable not found: {self.config.executable}")

        code, stdout, stderr = await self._run(self.build_args(executable, query))
        if code == 1:
            return []
        if code != 0:
            raise FallbackUnavailable.because(stderr.strip() or f"exited with code {code}", exit_code=code)

        matches = self.parse_output(stdout)
        matches.sort(key=lambda m: m.score, reverse=True)
        return matches[:limit]

    async def _run(self, args: list[str]) -> tuple[int, str, str]:
        try:
            proc = await asyncio.create_subprocess_exec(
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.root,
            )
        except OSError as e:
            raise FallbackUnavailable.because(f"cannot start ripgrep: {e}") from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                proc.communicate(), timeout=self.config.timeout_sec
            )
        except TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise FallbackUnavailable.because(f"timed out after {self.config.timeout_sec} seconds") from e

        returncode = proc.returncode if proc.returncode is not None else -1
        return returncode, stdout_bytes.decode(errors="replace"), stderr_bytes.decode(errors="replace")

    def parse_output(self, output: str) -> list[FallbackMatch]:
        """Extract ``match`` events from ripgrep JSON lines."""
        matches: list[FallbackMatch] = []
        for line in output.splitlines():
            if not line.strip():
                continue
            try:
                event = json.loads(line)
            except json.JSONDecodeError:
                continue
            if event.get("type") != "match":
                continue
            match = self._to_match(event.get("data") or {})
            if match is not None:
                matches.append(match)
        return matches

    def _to_match(self, data: dict[str, Any]) -> FallbackMatch | None:
        path = (data.get("path") or {}).get("text")
        text = (data.get("lines") or {}).get("text")
        line_number = data.get("line_number")
        # Non-UTF-8 paths and lines arrive base64-encoded under "bytes"
        if path is None or text is None or line_number is None:
            return None

        path = path.removeprefix("./")
        raw_line = text.rstrip("\r\n")
        return FallbackMatch(
            path=path,
            line_number=int(line_number),
            line_text=raw_line.strip(),
            score=score_match(
                path,
                raw_line,
                primary_dirs=self.primary_dirs,
                test_dirs=self.config.test_dirs,
                long_line_threshold=self.config.long_line_threshold,
            ),
        )
