"""codesearch init command - create the database and data directory."""

import click

from codesearch.cli.utils import load_cli_config, open_store
from codesearch.core.progress import status


@click.command()
@click.pass_context
def init_command(ctx: click.Context) -> None:
    """Create the database tables and the index directory.

    Safe to run repeatedly; existing data is left untouched.
    """
    config = load_cli_config(ctx)

    open_store(config)
    config.index_path.parent.mkdir(parents=True, exist_ok=True)

    status(f"Database: {config.db_path}", style="success")
    status(f"Index:    {config.index_path}", style="success")
    status("Run 'codesearch add-repo PATH' to register a repository", style="info")
