"""cdx mcp command - MCP server over stdio."""

from pathlib import Path

import click

from contextdex.cli.utils import cli_errors, load_project


@click.command()
@click.argument("path", default=None, required=False, type=click.Path(exists=True, path_type=Path))
@click.option("--no-watch", is_flag=True, help="Serve without watching the project for changes")
def mcp_command(path: Path | None, no_watch: bool) -> None:
    """Serve MCP tools over stdio for an editor or agent.

    Logs go to stderr; stdout carries protocol frames only.
    """
    from contextdex.mcp.server import run_stdio

    root, config = load_project(path)
    with cli_errors():
        run_stdio(root, config, watch=not no_watch)
