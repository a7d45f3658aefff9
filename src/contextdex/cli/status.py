"""cdx status command - show index and daemon status."""

import json
from pathlib import Path
from typing import Any

import click
import httpx

from contextdex.cli.utils import load_project


def _query_daemon(host: str, port: int) -> dict[str, Any] | None:
    """Status from a running daemon, or None when nothing answers."""
    try:
        response = httpx.get(f"http://{host}:{port}/status", timeout=2.0)
        response.raise_for_status()
        data: dict[str, Any] = response.json()
        return data
    except (httpx.HTTPError, json.JSONDecodeError):
        return None


@click.command()
@click.argument("path", default=None, required=False, type=click.Path(exists=True, path_type=Path))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status_command(path: Path | None, as_json: bool) -> None:
    """Show index status and whether a daemon is serving this project.

    PATH is the project root (default: auto-detect).
    """
    from contextdex.config.loader import get_index_path
    from contextdex.index.store import IndexStore

    root, config = load_project(path)
    store = IndexStore(get_index_path(root, config), config.database)
    try:
        store_status = store.status()
    finally:
        store.close()

    daemon = _query_daemon(config.server.host, config.server.port)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "root": str(root),
                    "store": store_status.to_dict(),
                    "daemon": {"running": daemon is not None, "status": daemon},
                }
            )
        )
        return

    click.echo(f"Project: {root}")
    click.echo(f"Index: {store_status.db_path}")
    if not store_status.connected:
        click.echo(f"  not available ({store_status.error}). Run 'cdx build'.")
    elif not store_status.schema_present:
        click.echo("  never built. Run 'cdx build'.")
    else:
        click.echo(f"  {store_status.entity_count} entities, {store_status.edge_count} edges")

    if daemon is None:
        click.echo("Daemon: not running")
    else:
        scheduler = daemon.get("scheduler", {})
        click.echo(
            f"Daemon: running on {config.server.host}:{config.server.port} "
            f"(scheduler {scheduler.get('state', 'unknown')}, {scheduler.get('cycles', 0)} cycles)"
        )
