"""Config module exports."""

from codesearch.config.loader import load_config
from codesearch.config.models import (
    BackfillConfig,
    CodeSearchConfig,
    DatabaseConfig,
    IndexerConfig,
    LoggingConfig,
    QueueConfig,
)

__all__ = [
    "load_config",
    "CodeSearchConfig",
    "BackfillConfig",
    "DatabaseConfig",
    "IndexerConfig",
    "LoggingConfig",
    "QueueConfig",
]
