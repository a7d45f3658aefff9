"""cdx build command - full scan and rebuild of the index."""

import asyncio
from pathlib import Path

import click

from contextdex.cli.utils import cli_errors, console, load_project


@click.command()
@click.argument("path", default=None, required=False, type=click.Path(exists=True, path_type=Path))
def build_command(path: Path | None) -> None:
    """Scan the whole project and rebuild the index from scratch.

    PATH is the project root. If not specified, auto-detects by walking up
    from the current directory.
    """
    from contextdex.mcp.context import AppContext

    root, config = load_project(path)
    context = AppContext.create(root, config)
    try:
        with cli_errors(), console.status("[cyan]Building index...[/cyan]", spinner="dots"):
            result = asyncio.run(context.pipeline.rebuild())
    finally:
        context.store.close()

    console.print(
        f"[green]✓[/green] Indexed {result.entities} entities from {result.paths} files "
        f"into {context.store.db_path}"
    )
