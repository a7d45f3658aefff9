"""cdx ingest command - load an extractor NDJSON export into the index."""

import sys
from pathlib import Path

import click

from contextdex.cli.utils import cli_errors, console, load_project


@click.command()
@click.argument("source", type=click.Path(allow_dash=True, path_type=Path))
@click.option("--incremental", is_flag=True, help="Merge into the existing index instead of rebuilding")
@click.option(
    "--root",
    "root_path",
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Project root (default: auto-detect)",
)
def ingest_command(source: Path, incremental: bool, root_path: Path | None) -> None:
    """Ingest NDJSON entity records from SOURCE ('-' for stdin).

    Without --incremental the index is dropped and rebuilt from SOURCE.
    With it, every path named in SOURCE is replaced atomically.
    """
    from contextdex.config.loader import get_index_path
    from contextdex.index.records import parse_ndjson
    from contextdex.index.store import IndexStore

    root, config = load_project(root_path)

    if str(source) == "-":
        text = sys.stdin.read()
        source_name = "stdin"
    else:
        try:
            text = source.read_text(encoding="utf-8")
        except OSError as e:
            raise click.ClickException(f"Cannot read {source}: {e}") from e
        source_name = str(source)

    entities = parse_ndjson(text, source=source_name)
    store = IndexStore(get_index_path(root, config), config.database)
    try:
        with cli_errors():
            if incremental:
                count = store.merge_incremental(entities)
            else:
                count = store.rebuild_full(entities)
    finally:
        store.close()

    mode = "merged" if incremental else "ingested"
    console.print(f"[green]✓[/green] {count} entities {mode} from {source_name}")
