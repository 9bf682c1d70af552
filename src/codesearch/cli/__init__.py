"""codesearch CLI."""

from codesearch.cli.main import cli

__all__ = ["cli"]
