"""Populate a freshly created index with the repositories that already exist."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from codesearch.core.errors import IndexerError
from codesearch.daemon.queue import IndexTask
from codesearch.index.models import RepoIndexerType

if TYPE_CHECKING:
    from codesearch.daemon.queue import WorkQueue
    from codesearch.index.store import RepoStore

logger = structlog.get_logger()

DEFAULT_PAGE_SIZE = 50


@dataclass
class BackfillResult:
    """Outcome of one backfill run."""

    enqueued: int
    completed: bool
    cursor: int


@dataclass
class BackfillWalker:
    """
    Walks repository ids from the current maximum downwards.

    Repositories created after the walk starts have ids above the starting
    maximum and are indexed by their own creation event, so the walker never
    looks above it. Progress is only held in memory; after a restart the
    unindexed set is recomputed from the indexer status table.
    """

    store: RepoStore
    queue: WorkQueue
    is_shutdown: Callable[[], bool]
    page_size: int = DEFAULT_PAGE_SIZE

    cursor: int = field(default=0, init=False)

    async def run(self) -> BackfillResult:
        logger.info("backfill_started")
        try:
            return await self._walk()
        except IndexerError:
            raise
        except Exception as e:
            raise IndexerError.backfill_failed(str(e)) from e

    async def _walk(self) -> BackfillResult:
        enqueued = 0

        if not await self._call(self.store.is_table_not_empty, "repository"):
            logger.info("backfill_skipped_no_repositories")
            return BackfillResult(enqueued=0, completed=True, cursor=0)

        # The index is new, so any existing status rows describe a previous index
        await self._call(self.store.delete_all_records, "repo_indexer_status")

        self.cursor = await self._call(self.store.get_max_id, "repository")

        while self.cursor > 0:
            if self.is_shutdown():
                return self._stopped(enqueued)

            ids = await self._call(
                self.store.get_unindexed_repos,
                RepoIndexerType.CODE,
                self.cursor,
                0,
                self.page_size,
            )
            if not ids:
                break

            for repo_id in ids:
                if self.is_shutdown():
                    return self._stopped(enqueued)
                await self.queue.push(IndexTask(repo_id=repo_id))
                enqueued += 1
                self.cursor = repo_id - 1

        logger.info("backfill_completed", enqueued=enqueued)
        return BackfillResult(enqueued=enqueued, completed=True, cursor=self.cursor)

    def _stopped(self, enqueued: int) -> BackfillResult:
        logger.info("backfill_shutdown_before_completion", enqueued=enqueued, cursor=self.cursor)
        return BackfillResult(enqueued=enqueued, completed=False, cursor=self.cursor)

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, fn, *args)
