"""codesearch CLI - codesearch command."""

from pathlib import Path

import click

from codesearch.cli.add_repo import add_repo_command
from codesearch.cli.init import init_command
from codesearch.cli.search import search_command
from codesearch.cli.up import up_command
from codesearch.core.logging import configure_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="codesearch")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="YAML config file (default: ./codesearch.yaml when present)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """codesearch - Background code search indexing for git repositories."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = config_path
    configure_logging(level="DEBUG" if verbose else "INFO")


cli.add_command(init_command, name="init")
cli.add_command(add_repo_command, name="add-repo")
cli.add_command(up_command, name="up")
cli.add_command(search_command, name="search")


if __name__ == "__main__":
    cli()
