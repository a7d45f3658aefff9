"""contextdex CLI - cdx command."""

import click

from contextdex.cli.build import build_command
from contextdex.cli.ingest import ingest_command
from contextdex.cli.mcp import mcp_command
from contextdex.cli.query import query_command
from contextdex.cli.refresh import refresh_command
from contextdex.cli.status import status_command
from contextdex.cli.up import up_command
from contextdex.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="cdx")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """contextdex - structural code index with hybrid search."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    configure_logging(level="DEBUG" if verbose else "WARNING")


cli.add_command(build_command, name="build")
cli.add_command(ingest_command, name="ingest")
cli.add_command(query_command, name="query")
cli.add_command(refresh_command, name="refresh")
cli.add_command(status_command, name="status")
cli.add_command(up_command, name="up")
cli.add_command(mcp_command, name="mcp")


if __name__ == "__main__":
    cli()
