"""cdx up command - start the HTTP daemon with file watching."""

import asyncio
from pathlib import Path

import click

from contextdex.cli.utils import cli_errors, console, load_project


@click.command()
@click.argument("path", default=None, required=False, type=click.Path(exists=True, path_type=Path))
@click.option("--port", "-p", type=int, help="Override server port")
def up_command(path: Path | None, port: int | None) -> None:
    """Start the contextdex server for this project. Runs in foreground.

    Builds the index first when it has never been built, then watches the
    project and serves /health, /status and MCP at /mcp.
    """
    from contextdex.config.constants import LOG_FILE
    from contextdex.config.loader import get_index_path
    from contextdex.core.logging import configure_logging
    from contextdex.daemon.lifecycle import run_server

    root, config = load_project(path)
    if port is not None:
        config.server.port = port

    # Configured outputs plus a DEBUG file next to the index
    log_file = get_index_path(root, config).parent / LOG_FILE
    configure_logging(config=config.logging, log_file=log_file)

    console.print(f"[bold]contextdex[/bold] serving {root} on http://{config.server.host}:{config.server.port}")
    try:
        with cli_errors():
            asyncio.run(run_server(root, config))
    except KeyboardInterrupt:
        click.echo("\nStopped")
