"""CLI utilities."""

from pathlib import Path

import click

from codesearch.config.loader import load_config
from codesearch.config.models import CodeSearchConfig
from codesearch.core.errors import ConfigError
from codesearch.core.logging import configure_logging
from codesearch.index.db import Database
from codesearch.index.store import RepoStore


def load_cli_config(ctx: click.Context) -> CodeSearchConfig:
    """Load config for a command and apply its logging section.

    ``-v`` keeps debug console logging and overrides the configured outputs.

    Raises:
        click.ClickException: If the config cannot be read or is invalid
    """
    config_path: Path | None = ctx.obj.get("config_path") if ctx.obj else None
    try:
        config = load_config(config_path)
    except ConfigError as e:
        raise click.ClickException(e.message) from e

    if not (ctx.obj and ctx.obj.get("verbose")):
        configure_logging(config=config.logging)
    return config


def open_store(config: CodeSearchConfig) -> RepoStore:
    """Open the configured database, creating tables if needed."""
    db = Database(config.db_path, busy_timeout_ms=config.database.busy_timeout_ms)
    db.create_all()
    return RepoStore(db)
