"""User-facing status output for CLI commands.

Usage::

    from codesearch.core.progress import status

    status("Opening index...")
    status("Ready", style="success")  # ✓ Ready
    status("Index failed to open", style="error")  # ✗ Index failed to open
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console

if TYPE_CHECKING:
    from structlog.stdlib import BoundLogger

# Status lines go to stderr; command results go to stdout
_console = Console(stderr=True)
_stdout = Console()

_STYLES = {
    "success": "[green]✓[/green] ",
    "error": "[red]✗[/red] ",
    "warning": "[yellow]![/yellow] ",
    "info": "  ",
    "none": "",
}


def _get_logger() -> BoundLogger:
    """Get logger lazily to respect runtime config."""
    from codesearch.core.logging import get_logger

    return get_logger("progress")


def get_console(*, stderr: bool = True) -> Console:
    """Get the shared Rich console instance."""
    return _console if stderr else _stdout


def status(message: str, *, style: str = "info", indent: int = 0) -> None:
    """Print a styled status message to stderr."""
    prefix = _STYLES.get(style, "")
    padding = " " * indent
    _console.print(f"{padding}{prefix}{message}", highlight=False)

    _get_logger().debug("status", message=message, style=style)


def pluralize(count: int, singular: str, plural: str | None = None) -> str:
    """Return "1 file" / "3 files" style counts."""
    if plural is None:
        plural = singular + "s"
    word = singular if count == 1 else plural
    return f"{count} {word}"
