"""Index module - repository metadata store and pluggable search backends.

This module provides:
- Relational bookkeeping: repositories, indexer status, persisted queue items
- Backend contract and registry (`codesearch.index.backend`)
- Tantivy full-text backend (`codesearch.index.lexical`)
"""

from codesearch.index.backend import (
    SearchBackend,
    SearchResult,
    SearchResults,
    get_backend_opener,
    register_backend,
    registered_backends,
)
from codesearch.index.db import Database
from codesearch.index.models import (
    IndexerQueueItem,
    RepoIndexerStatus,
    RepoIndexerType,
    Repository,
)
from codesearch.index.store import RepoStore

__all__ = [
    # Backends
    "SearchBackend",
    "SearchResult",
    "SearchResults",
    "get_backend_opener",
    "register_backend",
    "registered_backends",
    # Database
    "Database",
    "RepoStore",
    # Table models
    "IndexerQueueItem",
    "RepoIndexerStatus",
    "RepoIndexerType",
    "Repository",
]
