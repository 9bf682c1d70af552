"""Core module exports."""

from codesearch.core.errors import (
    CodeSearchError,
    ConfigError,
    ErrorCode,
    IndexerError,
    InternalError,
    QueueError,
)
from codesearch.core.logging import configure_logging, get_logger

__all__ = [
    # Errors
    "CodeSearchError",
    "ConfigError",
    "ErrorCode",
    "IndexerError",
    "InternalError",
    "QueueError",
    # Logging
    "configure_logging",
    "get_logger",
]
