"""Public API for the repository code indexer.

CodeIndexer is the composition root: it owns the handle, queue, consumer and
lifecycle controller of one process and is passed to whatever produces
repository events.

Usage::

    indexer = CodeIndexer.from_config(load_config())
    await indexer.init()
    await indexer.wait_started()

    await indexer.update_repo_indexer(repo_id)
    results = await indexer.search([repo_id], "def main")

    await indexer.close()
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from codesearch.config.models import CodeSearchConfig
from codesearch.core.errors import IndexerError
from codesearch.daemon.consumer import DeadLetter, DeadLetters, TaskConsumer
from codesearch.daemon.graceful import GracefulManager
from codesearch.daemon.handle import HandleState, IndexerHandle
from codesearch.daemon.lifecycle import ControllerState, IndexerController
from codesearch.daemon.queue import IndexTask, create_queue
from codesearch.index.backend import BackendOpener, SearchResults, get_backend_opener
from codesearch.index.db import Database
from codesearch.index.models import Repository
from codesearch.index.store import RepoStore

logger = structlog.get_logger()

RepoRef = int | Repository


def _repo_id(repo: RepoRef) -> int:
    if isinstance(repo, Repository):
        if repo.id is None:
            raise ValueError("Repository has no id; persist it before indexing")
        return repo.id
    return repo


@dataclass
class IndexerStatus:
    """Snapshot of the indexer for status reporting."""

    state: ControllerState
    handle_state: HandleState
    queue_size: int
    dead_letters: list[DeadLetter]


class CodeIndexer:
    """Schedules repository indexing and serves code search."""

    def __init__(
        self,
        config: CodeSearchConfig,
        store: RepoStore,
        graceful: GracefulManager | None = None,
        opener: BackendOpener | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.graceful = graceful or GracefulManager()

        if opener is None and config.indexer.enabled:
            opener = get_backend_opener(config.indexer.repo_type)

        self.handle = IndexerHandle(close_timeout=config.indexer.close_timeout_sec)
        self.dead_letters = DeadLetters(capacity=config.indexer.dead_letter_capacity)
        self.queue = create_queue(config.queue, store)
        self.consumer = TaskConsumer(self.handle, self.dead_letters)
        self.queue.register_consumer(self.consumer.handle_batch)
        self.controller = IndexerController(
            config=config,
            handle=self.handle,
            queue=self.queue,
            store=store,
            graceful=self.graceful,
            opener=opener,
            dead_letters=self.dead_letters,
        )

    @classmethod
    def from_config(
        cls,
        config: CodeSearchConfig,
        graceful: GracefulManager | None = None,
    ) -> CodeIndexer:
        """Open the configured database (creating tables) and build an indexer."""
        db = Database(config.db_path, busy_timeout_ms=config.database.busy_timeout_ms)
        db.create_all()
        return cls(config, RepoStore(db), graceful=graceful)

    @property
    def enabled(self) -> bool:
        return self.config.indexer.enabled

    async def init(self) -> None:
        """Start the indexer. Calling it again is a no-op."""
        await self.controller.start()

    async def wait_started(self) -> None:
        """Wait until the index is open; raises IndexerError on fatal startup failure."""
        await self.controller.wait_started()

    async def update_repo_indexer(self, repo: RepoRef) -> None:
        """Queue (re)indexing of a repository's content."""
        await self._push(IndexTask(repo_id=_repo_id(repo), is_delete=False))

    async def delete_repo_from_indexer(self, repo: RepoRef) -> None:
        """Queue removal of all of a repository's entries from the index."""
        await self._push(IndexTask(repo_id=_repo_id(repo), is_delete=True))

    async def _push(self, task: IndexTask) -> None:
        if not self.enabled:
            return
        await self.queue.push(task)

    async def search(
        self,
        repo_ids: Iterable[int],
        keyword: str,
        page: int = 1,
        page_size: int = 10,
    ) -> SearchResults:
        """Search indexed code.

        Raises:
            IndexerError: ``INDEX_NOT_READY`` when the index is not open, so an
                unavailable index is never mistaken for an empty result.
        """
        ids = sorted(set(repo_ids))
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._search_sync, ids, keyword, page, page_size)

    def _search_sync(
        self, repo_ids: list[int], keyword: str, page: int, page_size: int
    ) -> SearchResults:
        with self.handle.lease() as backend:
            if backend is None:
                raise IndexerError.not_ready()
            return backend.search(repo_ids, keyword, page, page_size)

    async def retry_failed(self) -> int:
        """Re-queue every dead-lettered task. Returns how many were queued."""
        tasks = self.dead_letters.take()
        for task in tasks:
            await self._push(task)
        if tasks:
            logger.info("dead_letters_requeued", count=len(tasks))
        return len(tasks)

    def status(self) -> IndexerStatus:
        return IndexerStatus(
            state=self.controller.state,
            handle_state=self.handle.state,
            queue_size=self.queue.size,
            dead_letters=self.dead_letters.entries(),
        )

    async def close(self) -> None:
        """Stop the pipeline and release the index."""
        await self.controller.stop()
