"""CLI utilities."""

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from rich.console import Console

from contextdex.config.constants import STATE_DIR
from contextdex.config.loader import load_config
from contextdex.config.models import ContextdexConfig
from contextdex.core.errors import ContextdexError

# Project markers checked while walking up from the start directory
PROJECT_MARKERS = (STATE_DIR, "mix.exs", ".git")

console = Console(stderr=True)


def find_project_root(start_path: Path | None = None) -> Path:
    """Find the project root from the given path.

    Walks up the directory tree looking for a .contextdex directory, a
    mix.exs file or a .git directory, in that order at each level. Falls
    back to the start path when none is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    start = start_path.resolve()
    current = start
    while True:
        if any((current / marker).exists() for marker in PROJECT_MARKERS):
            return current
        if current == current.parent:
            return start
        current = current.parent


def load_project(path: Path | None) -> tuple[Path, ContextdexConfig]:
    """Resolve the project root and its config, as click errors on failure."""
    root = find_project_root(path)
    with cli_errors():
        config = load_config(root)
    return root, config


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn contextdex errors into click errors with their code."""
    try:
        yield
    except ContextdexError as e:
        raise click.ClickException(str(e)) from e
