"""cdx refresh command - full or incremental refresh without a running server."""

import asyncio
from pathlib import Path

import click

from contextdex.cli.utils import cli_errors, console, load_project


@click.command()
@click.argument("paths", nargs=-1, type=click.Path(path_type=Path))
@click.option(
    "--root",
    "root_path",
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project root (default: auto-detect)",
)
def refresh_command(paths: tuple[Path, ...], root_path: Path | None) -> None:
    """Refresh the index.

    With PATHS, re-extracts those files and purges the ones that no longer
    exist. Without, rebuilds everything.
    """
    from contextdex.mcp.context import AppContext

    root, config = load_project(root_path)
    context = AppContext.create(root, config)
    resolved = [p if p.is_absolute() else (Path.cwd() / p).resolve() for p in paths]

    try:
        with cli_errors():
            if resolved:
                result = asyncio.run(context.pipeline.update(resolved))
            else:
                result = asyncio.run(context.pipeline.rebuild())
    finally:
        context.store.close()

    console.print(f"[green]✓[/green] {result.mode} refresh: {result.entities} entities, {result.paths} paths")
