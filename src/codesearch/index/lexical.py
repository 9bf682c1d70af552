"""Tantivy-backed repository code search.

One Tantivy document per file at a repository's HEAD. Documents carry the
repository id twice: as an indexed integer for query filtering and as a
raw-tokenized key for exact-term deletion.

Usage::

    backend, created = open_tantivy_backend(path, store, config)
    backend.index(repo_id)
    results = backend.search([repo_id], "def main", page=1, page_size=10)
"""

from __future__ import annotations

import re
import shutil
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
import tantivy

from codesearch.index.backend import SearchResult, SearchResults, register_backend
from codesearch.index.content import RepoContentSource
from codesearch.index.models import RepoIndexerType

if TYPE_CHECKING:
    from codesearch.config.models import IndexerConfig
    from codesearch.index.store import RepoStore

logger = structlog.get_logger()

# Bump when the schema changes; an index written with another version is rebuilt.
INDEX_VERSION = 1
VERSION_FILE = "codesearch.version"

SNIPPET_CONTEXT_LINES = 1

_TOKEN_RE = re.compile(r"[^\W_]+")


def _build_schema() -> Any:
    schema_builder = tantivy.SchemaBuilder()
    schema_builder.add_integer_field("repo_id", stored=True, indexed=True)
    # Raw tokenizer for exact-term deletion of a whole repository
    schema_builder.add_text_field("repo_key", stored=False, tokenizer_name="raw")
    schema_builder.add_text_field("filename", stored=True, tokenizer_name="default")
    schema_builder.add_text_field("content", stored=True, tokenizer_name="default")
    return schema_builder.build()


def _read_version(path: Path) -> int | None:
    try:
        return int((path / VERSION_FILE).read_text().strip())
    except (FileNotFoundError, ValueError):
        return None


def _escape_phrase(keyword: str) -> str:
    """Make ``keyword`` safe to embed in a quoted Tantivy phrase."""
    return " ".join(keyword.replace("\\", " ").replace('"', " ").split())


def _match_span(content: str, keyword: str) -> tuple[int, int]:
    """Character offsets of the first phrase match, or (0, 0).

    Matches the way the default tokenizer does: case-insensitive runs of
    letters and digits, with any other characters between them.
    """
    tokens = _TOKEN_RE.findall(keyword)
    if not tokens:
        return 0, 0
    pattern = r"(?<![^\W_])" + r"[\W_]+".join(map(re.escape, tokens)) + r"(?![^\W_])"
    match = re.search(pattern, content, re.IGNORECASE)
    if match is None:
        return 0, 0
    return match.start(), match.end()


def _snippet(content: str, start: int, end: int) -> tuple[str, int, int]:
    """Cut the lines around [start, end) and re-base the offsets on the snippet."""
    lines = content.split("\n")
    line_no = content.count("\n", 0, start)
    first = max(0, line_no - SNIPPET_CONTEXT_LINES)
    last = min(len(lines), content.count("\n", 0, end) + SNIPPET_CONTEXT_LINES + 1)
    snippet = "\n".join(lines[first:last])
    base = sum(len(line) + 1 for line in lines[:first])
    return snippet, start - base, end - base


class TantivyBackend:
    """Full-text index of repository HEAD trees using Tantivy.

    Writes are serialized by a lock (Tantivy allows one writer per index);
    searches run concurrently against a reloaded searcher.
    """

    def __init__(
        self,
        index: Any,
        index_path: Path,
        store: RepoStore,
        config: IndexerConfig,
    ) -> None:
        self.index_path = index_path
        self._index: Any = index
        self._store = store
        self._max_file_size = config.max_file_size_mb * 1024 * 1024
        self._excluded_extensions = list(config.excluded_extensions)
        self._write_lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._index is None

    def _require_index(self) -> Any:
        if self._index is None:
            raise RuntimeError(f"Tantivy index at {self.index_path} is closed")
        return self._index

    def index(self, repo_id: int) -> None:
        """Replace every document of ``repo_id`` with its current HEAD files.

        A repository that no longer exists is removed instead, so an index
        task arriving after a delete converges to the same end state.
        """
        repo = self._store.get_repository(repo_id)
        if repo is None:
            logger.debug("index_repo_missing", repo_id=repo_id)
            self.delete(repo_id)
            return
        if repo.is_empty:
            return

        source = RepoContentSource(
            repo.repo_path,
            max_file_size=self._max_file_size,
            excluded_extensions=self._excluded_extensions,
        )
        sha = source.head_sha()
        status = self._store.get_indexer_status(repo_id, RepoIndexerType.CODE)
        if sha is not None and status is not None and status.commit_sha == sha:
            logger.debug("index_up_to_date", repo_id=repo_id, commit_sha=sha)
            return

        index = self._require_index()
        with self._write_lock:
            writer = index.writer()
            try:
                writer.delete_documents("repo_key", str(repo_id))
                count = 0
                for repo_file in source.iter_files():
                    doc = tantivy.Document()
                    doc.add_integer("repo_id", repo_id)
                    doc.add_text("repo_key", str(repo_id))
                    doc.add_text("filename", repo_file.path)
                    doc.add_text("content", repo_file.content)
                    writer.add_document(doc)
                    count += 1
                writer.commit()
            except Exception:
                writer.rollback()
                raise

        self._store.update_indexer_status(repo_id, RepoIndexerType.CODE, sha or "")
        logger.debug("repo_indexed", repo_id=repo_id, files=count, commit_sha=sha)

    def delete(self, repo_id: int) -> None:
        """Remove every document of ``repo_id`` and its indexer status."""
        index = self._require_index()
        with self._write_lock:
            writer = index.writer()
            try:
                writer.delete_documents("repo_key", str(repo_id))
                writer.commit()
            except Exception:
                writer.rollback()
                raise
        self._store.delete_indexer_status(repo_id)
        logger.debug("repo_deleted_from_index", repo_id=repo_id)

    def search(
        self,
        repo_ids: list[int],
        keyword: str,
        page: int,
        page_size: int,
    ) -> SearchResults:
        """Phrase-search ``keyword`` in file contents.

        Args:
            repo_ids: Repositories to search; empty searches all of them.
            keyword: Phrase to match.
            page: 1-based page number; values below 1 are treated as 1.
            page_size: Files per page.

        Returns:
            SearchResults whose ``total`` counts every matching file.
        """
        phrase = _escape_phrase(keyword)
        if not phrase or page_size < 1:
            return SearchResults()

        index = self._require_index()
        query_str = f'content:"{phrase}"'
        if repo_ids:
            repo_filter = " OR ".join(f"repo_id:{int(repo_id)}" for repo_id in repo_ids)
            query_str = f"{query_str} AND ({repo_filter})"

        index.reload()
        searcher = index.searcher()
        query = index.parse_query(query_str, ["content"])
        offset = (max(page, 1) - 1) * page_size
        hits = searcher.search(query, limit=page_size, count=True, offset=offset)

        results = SearchResults(total=int(hits.count or 0))
        for _score, doc_addr in hits.hits:
            doc = searcher.doc(doc_addr)
            content = doc.get_first("content") or ""
            start, end = _match_span(content, phrase)
            snippet, snippet_start, snippet_end = _snippet(content, start, end)
            results.results.append(
                SearchResult(
                    repo_id=int(doc.get_first("repo_id")),
                    start_index=snippet_start,
                    end_index=snippet_end,
                    filename=doc.get_first("filename") or "",
                    content=snippet,
                )
            )
        return results

    def doc_count(self) -> int:
        index = self._require_index()
        index.reload()
        return int(index.searcher().num_docs)

    def close(self) -> None:
        """Drop the index reference; Tantivy releases its files on collection."""
        if self._index is None:
            return
        with self._write_lock:
            self._index = None
        logger.debug("tantivy_index_closed", path=str(self.index_path))


@register_backend("tantivy")
def open_tantivy_backend(
    index_path: Path,
    store: RepoStore,
    config: IndexerConfig,
) -> tuple[TantivyBackend, bool]:
    """Open the index at ``index_path``, creating it when missing.

    Returns:
        (backend, created) where ``created`` is True for a new, empty index.
    """
    index_path = Path(index_path)
    created = not (index_path / "meta.json").exists()

    if not created and _read_version(index_path) != INDEX_VERSION:
        logger.warning(
            "index_version_mismatch",
            path=str(index_path),
            found=_read_version(index_path),
            expected=INDEX_VERSION,
        )
        shutil.rmtree(index_path)
        created = True

    index_path.mkdir(parents=True, exist_ok=True)
    index = tantivy.Index(_build_schema(), path=str(index_path))
    if created:
        (index_path / VERSION_FILE).write_text(str(INDEX_VERSION))

    return TantivyBackend(index, index_path, store, config), created
