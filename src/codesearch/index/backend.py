"""Search backend contract and registry.

A backend indexes and searches the content of one repository at a time.
Backends are registered by name and opened through an opener that reports
whether the on-disk index was freshly created (which triggers the backfill)
or reopened.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from codesearch.core.errors import IndexerError

if TYPE_CHECKING:
    from codesearch.config.models import IndexerConfig
    from codesearch.index.store import RepoStore


@dataclass(frozen=True)
class SearchResult:
    """A single search hit inside one file of one repository."""

    repo_id: int
    start_index: int
    end_index: int
    filename: str
    content: str


@dataclass
class SearchResults:
    """One page of search hits plus the total number of matching files."""

    total: int = 0
    results: list[SearchResult] = field(default_factory=list)


class SearchBackend(Protocol):
    """Capability consumed by the indexing pipeline."""

    def index(self, repo_id: int) -> None: ...

    def delete(self, repo_id: int) -> None: ...

    def search(
        self, repo_ids: list[int], keyword: str, page: int, page_size: int
    ) -> SearchResults: ...

    def close(self) -> None: ...


BackendOpener = Callable[[Path, "RepoStore", "IndexerConfig"], tuple[SearchBackend, bool]]

_OPENERS: dict[str, BackendOpener] = {}


def register_backend(name: str) -> Callable[[BackendOpener], BackendOpener]:
    """Register an opener under ``name`` (used as ``indexer.repo_type``)."""

    def decorator(opener: BackendOpener) -> BackendOpener:
        _OPENERS[name.lower()] = opener
        return opener

    return decorator


def get_backend_opener(name: str) -> BackendOpener:
    # Built-in backends register on import
    from codesearch.index import lexical  # noqa: F401

    try:
        return _OPENERS[name.lower()]
    except KeyError:
        raise IndexerError.unknown_backend(name, sorted(_OPENERS)) from None


def registered_backends() -> list[str]:
    from codesearch.index import lexical  # noqa: F401

    return sorted(_OPENERS)
