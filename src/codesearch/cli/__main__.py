"""Allow ``python -m codesearch.cli``."""

from codesearch.cli.main import cli

cli()
