"""Tests for index/extractor.py: command extractor and codebase routing."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from contextdex.config.models import ExtractorConfig, IndexConfig
from contextdex.core.errors import ExtractionFailed
from contextdex.index.extractor import CodebaseExtractor, CommandExtractor
from contextdex.index.models import EntityKind

# Emits one entity per file passed after --files, or one fixed entity on a full scan
FAKE_EXTRACTOR = """\
import json, sys
args = sys.argv[1:]
if "--files" in args:
    files = args[args.index("--files") + 1:]
else:
    files = ["lib/my_app/accounts.ex"]
for path in files:
    print(json.dumps({"container": "MyApp.Accounts", "name": "create_user", "arity": 1,
                      "path": path, "start_line": 2, "end_line": 4,
                      "lexical_text": "create_user attrs"}))
print("not json at all")
"""


@pytest.fixture
def extractor_script(tmp_path: Path) -> Path:
    script = tmp_path / "fake_extractor.py"
    script.write_text(FAKE_EXTRACTOR)
    return script


def make_codebase(root: Path, command: list[str]) -> CodebaseExtractor:
    return CodebaseExtractor(root, IndexConfig(), ExtractorConfig(command=command, timeout_sec=30))


class TestCommandExtractor:
    @pytest.mark.asyncio
    async def test_disabled_without_command(self, tmp_path: Path) -> None:
        extractor = CommandExtractor(tmp_path, ExtractorConfig())
        assert extractor.enabled is False
        assert await extractor.extract_all() == []

    @pytest.mark.asyncio
    async def test_full_scan_parses_output_skipping_bad_lines(
        self, tmp_path: Path, extractor_script: Path
    ) -> None:
        extractor = CommandExtractor(tmp_path, ExtractorConfig(command=[sys.executable, str(extractor_script)]))
        entities = await extractor.extract_all()
        assert [e.path for e in entities] == ["lib/my_app/accounts.ex"]

    @pytest.mark.asyncio
    async def test_files_flag_appended(self, tmp_path: Path, extractor_script: Path) -> None:
        extractor = CommandExtractor(tmp_path, ExtractorConfig(command=[sys.executable, str(extractor_script)]))
        entities = await extractor.extract_files(["lib/a/one.ex", "lib/a/two.ex"])
        assert [e.path for e in entities] == ["lib/a/one.ex", "lib/a/two.ex"]

    @pytest.mark.asyncio
    async def test_empty_batch_does_not_run(self, tmp_path: Path) -> None:
        extractor = CommandExtractor(tmp_path, ExtractorConfig(command=["/nonexistent/extractor"]))
        assert await extractor.extract_files([]) == []

    @pytest.mark.asyncio
    async def test_nonzero_exit_raises(self, tmp_path: Path) -> None:
        command = [sys.executable, "-c", "import sys; sys.stderr.write('mix failed'); sys.exit(3)"]
        extractor = CommandExtractor(tmp_path, ExtractorConfig(command=command))
        with pytest.raises(ExtractionFailed) as exc_info:
            await extractor.extract_all()
        assert exc_info.value.details["exit_code"] == 3
        assert "mix failed" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_executable_raises(self, tmp_path: Path) -> None:
        extractor = CommandExtractor(tmp_path, ExtractorConfig(command=[str(tmp_path / "nope")]))
        with pytest.raises(ExtractionFailed):
            await extractor.extract_all()

    @pytest.mark.asyncio
    async def test_output_without_records_raises(self, tmp_path: Path) -> None:
        command = [sys.executable, "-c", "print('garbage')"]
        extractor = CommandExtractor(tmp_path, ExtractorConfig(command=command))
        with pytest.raises(ExtractionFailed):
            await extractor.extract_all()

    @pytest.mark.asyncio
    async def test_empty_output_for_named_files_raises(self, tmp_path: Path) -> None:
        extractor = CommandExtractor(tmp_path, ExtractorConfig(command=[sys.executable, "-c", "pass"]))
        with pytest.raises(ExtractionFailed) as exc_info:
            await extractor.extract_files(["lib/my_app/accounts.ex"])
        assert "no parseable records" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_empty_full_scan_allowed_without_sources(self, tmp_path: Path) -> None:
        extractor = CommandExtractor(tmp_path, ExtractorConfig(command=[sys.executable, "-c", "pass"]))
        assert await extractor.extract_all() == []
        with pytest.raises(ExtractionFailed):
            await extractor.extract_all(require_records=True)

    @pytest.mark.asyncio
    async def test_timeout_kills_process(self, tmp_path: Path) -> None:
        command = [sys.executable, "-c", "import time; time.sleep(30)"]
        extractor = CommandExtractor(tmp_path, ExtractorConfig(command=command, timeout_sec=0.5))
        with pytest.raises(ExtractionFailed) as exc_info:
            await extractor.extract_all()
        assert "timed out" in exc_info.value.message


class TestCodebaseExtractor:
    def test_walk_skips_excluded_and_unindexed(self, elixir_project: Path) -> None:
        files = sorted(make_codebase(elixir_project, []).walk())
        assert files == [
            "lib/my_app/accounts.ex",
            "lib/my_app_web/live/user_live.html.heex",
            "mix.exs",
            "test/accounts_test.exs",
        ]

    def test_walk_skips_symlinks(self, elixir_project: Path) -> None:
        link = elixir_project / "lib" / "alias.ex"
        link.symlink_to(elixir_project / "lib" / "my_app" / "accounts.ex")
        assert "lib/alias.ex" not in list(make_codebase(elixir_project, []).walk())

    def test_relative(self, elixir_project: Path) -> None:
        extractor = make_codebase(elixir_project, [])
        assert extractor.relative(elixir_project / "lib" / "x.ex") == "lib/x.ex"
        assert extractor.relative("lib/x.ex") == "lib/x.ex"

    @pytest.mark.asyncio
    async def test_extract_routes_templates_in_process(self, elixir_project: Path) -> None:
        extractor = make_codebase(elixir_project, [])
        entities = await extractor.extract(
            ["lib/my_app_web/live/user_live.html.heex", "lib/my_app/accounts.ex", "lib/gone.ex", "README.md"]
        )
        assert [e.kind for e in entities] == [EntityKind.TEMPLATE]
        assert entities[0].references == ["format_name"]

    @pytest.mark.asyncio
    async def test_extract_sends_sources_to_command(
        self, elixir_project: Path, extractor_script: Path
    ) -> None:
        extractor = make_codebase(elixir_project, [sys.executable, str(extractor_script)])
        entities = await extractor.extract([elixir_project / "lib" / "my_app" / "accounts.ex"])
        assert [(e.path, e.kind) for e in entities] == [("lib/my_app/accounts.ex", EntityKind.DEFINITION)]

    @pytest.mark.asyncio
    async def test_extract_all_combines_command_and_templates(
        self, elixir_project: Path, extractor_script: Path
    ) -> None:
        extractor = make_codebase(elixir_project, [sys.executable, str(extractor_script)])
        entities = await extractor.extract_all()
        assert sorted(e.path for e in entities) == [
            "lib/my_app/accounts.ex",
            "lib/my_app_web/live/user_live.html.heex",
        ]
