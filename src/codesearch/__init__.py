"""codesearch - background code search indexing for git repositories."""

from codesearch.ops import CodeIndexer, IndexerStatus

__version__ = "0.1.0"

__all__ = ["CodeIndexer", "IndexerStatus", "__version__"]
