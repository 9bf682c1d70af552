"""codesearch add-repo command - register a git repository."""

from pathlib import Path

import click
import pygit2

from codesearch.cli.utils import load_cli_config, open_store
from codesearch.core.progress import status


def find_repo_root(start_path: Path) -> Path:
    """Resolve the working tree (or bare repository) containing ``start_path``.

    Raises:
        click.ClickException: If not inside a git repository
    """
    discovered = pygit2.discover_repository(str(start_path.resolve()))
    if discovered is None:
        raise click.ClickException(f"Not inside a git repository: {start_path}")

    repo = pygit2.Repository(discovered)
    if repo.is_bare:
        return Path(repo.path).resolve()
    return Path(repo.workdir).resolve()


@click.command()
@click.argument("path", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option("--owner", default="local", show_default=True, help="Repository owner name")
@click.option("--name", default=None, help="Repository name (default: directory name)")
@click.pass_context
def add_repo_command(ctx: click.Context, path: Path, owner: str, name: str | None) -> None:
    """Register the git repository at PATH for indexing.

    With the persistable queue the repository is queued immediately and is
    indexed the next time 'codesearch up' runs (or picked up by the backfill
    of a freshly created index).
    """
    config = load_cli_config(ctx)
    repo_root = find_repo_root(path)
    repo_name = name or repo_root.name.removesuffix(".git")

    store = open_store(config)
    repo_id = store.create_repository(owner, repo_name, str(repo_root))
    status(f"Registered {owner}/{repo_name} (id {repo_id})", style="success")

    if config.queue.type == "persistable-channel":
        store.save_queue_items(config.queue.name, [(repo_id, False)])
        status("Queued for indexing", style="info")
    else:
        status(
            "In-memory queue configured; indexed only by a fresh index backfill",
            style="warning",
        )
