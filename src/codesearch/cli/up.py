"""codesearch up command - run the indexer in the foreground."""

import asyncio

import click

from codesearch.cli.utils import load_cli_config
from codesearch.config.models import CodeSearchConfig
from codesearch.core.errors import IndexerError
from codesearch.core.progress import status
from codesearch.daemon.graceful import GracefulManager
from codesearch.daemon.lifecycle import ControllerState
from codesearch.ops import CodeIndexer


async def run_indexer(config: CodeSearchConfig, graceful: GracefulManager) -> None:
    """Start the indexer, wait for shutdown, then stop it.

    Raises:
        IndexerError: If the index fails to open or times out opening.
    """
    indexer = CodeIndexer.from_config(config, graceful=graceful)
    await indexer.init()
    try:
        await indexer.wait_started()

        state = indexer.controller.state
        if state is ControllerState.READY:
            status(f"Indexer ready: {config.index_path}", style="success")
        elif state is ControllerState.CLOSED and not indexer.enabled:
            status("Indexer disabled by configuration", style="warning")

        await graceful.wait_for_shutdown()
    finally:
        graceful.terminate()
        await indexer.close()


@click.command()
@click.pass_context
def up_command(ctx: click.Context) -> None:
    """Run the indexer until interrupted (Ctrl+C or SIGTERM).

    Exits non-zero when the index cannot be opened within
    indexer.startup_timeout_sec.
    """
    config = load_cli_config(ctx)

    async def _main() -> None:
        graceful = GracefulManager()
        graceful.install_signal_handlers(asyncio.get_running_loop())
        await run_indexer(config, graceful)

    try:
        asyncio.run(_main())
    except IndexerError as e:
        status(str(e), style="error")
        raise click.ClickException(e.message) from e

    status("Indexer stopped", style="info")
