"""cdx query command - hybrid search from the terminal."""

import asyncio
import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from contextdex.cli.utils import cli_errors, load_project


@click.command()
@click.argument("query")
@click.option("--k", "k", type=click.IntRange(1, 100), default=None, help="Maximum results")
@click.option("--no-fallback", is_flag=True, help="Index results only, never run ripgrep")
@click.option("--pack", is_flag=True, help="Print a context pack instead of a result table")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option(
    "--root",
    "root_path",
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project root (default: auto-detect)",
)
def query_command(
    query: str,
    k: int | None,
    no_fallback: bool,
    pack: bool,
    as_json: bool,
    root_path: Path | None,
) -> None:
    """Search the index for QUERY."""
    from contextdex.mcp.context import AppContext

    root, config = load_project(root_path)
    context = AppContext.create(root, config)
    limit = k or config.search.default_k
    out = Console()

    try:
        with cli_errors():
            if pack:
                bundle = context.packer.pack(query=query, k=limit)
                if as_json:
                    click.echo(json.dumps(bundle.to_dict(), indent=2))
                else:
                    click.echo(bundle.text or "No entities matched.")
                return

            results = asyncio.run(context.engine.search(query, k=limit, use_fallback=not no_fallback))
    finally:
        context.store.close()

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
        return

    if not results:
        out.print(f'No results for "{query}"')
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("Score", justify="right")
    table.add_column("Entity")
    table.add_column("Location")
    table.add_column("Source", style="dim")
    for r in results:
        if r.arity is not None:
            entity = f"{r.container}.{r.name}/{r.arity}"
        else:
            entity = f"{r.container}.{r.name or '?'}"
        table.add_row(f"{r.score:.1f}", entity, f"{r.path}:{r.start_line}", r.source)
    out.print(table)
