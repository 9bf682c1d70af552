"""codesearch search command - query the index from the command line."""

import click
from rich.table import Table
from rich.text import Text

from codesearch.cli.utils import load_cli_config, open_store
from codesearch.core.errors import CodeSearchError
from codesearch.core.progress import get_console, pluralize, status
from codesearch.index.backend import get_backend_opener


@click.command()
@click.argument("keyword")
@click.option(
    "--repo",
    "repo_ids",
    type=int,
    multiple=True,
    help="Repository id to search (repeatable; default: all)",
)
@click.option("--page", type=int, default=1, show_default=True)
@click.option("--page-size", type=int, default=10, show_default=True)
@click.pass_context
def search_command(
    ctx: click.Context,
    keyword: str,
    repo_ids: tuple[int, ...],
    page: int,
    page_size: int,
) -> None:
    """Search indexed code for KEYWORD."""
    config = load_cli_config(ctx)

    if not (config.index_path / "meta.json").exists():
        raise click.ClickException(
            f"No index at {config.index_path}. Run 'codesearch up' to build it."
        )

    store = open_store(config)
    try:
        opener = get_backend_opener(config.indexer.repo_type)
    except CodeSearchError as e:
        raise click.ClickException(e.message) from e

    backend, _ = opener(config.index_path, store, config.indexer)
    try:
        results = backend.search(sorted(set(repo_ids)), keyword, page, page_size)
    finally:
        backend.close()

    if not results.results:
        status(f"No matches ({pluralize(results.total, 'file')} total)", style="info")
        return

    names: dict[int, str] = {}
    table = Table(title=f"{pluralize(results.total, 'matching file')}")
    table.add_column("Repository", style="cyan")
    table.add_column("File", style="green")
    table.add_column("Snippet")

    for result in results.results:
        if result.repo_id not in names:
            repo = store.get_repository(result.repo_id)
            names[result.repo_id] = repo.full_name if repo else str(result.repo_id)
        snippet = Text(result.content)
        snippet.stylize("bold yellow", result.start_index, result.end_index)
        table.add_row(names[result.repo_id], result.filename, snippet)

    get_console(stderr=False).print(table)
