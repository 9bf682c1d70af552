"""Bounded, batched work queue for index tasks.

Producers ``await push(task)`` from the event loop; a single worker drains
the buffer in batches and hands each batch to the registered consumer in a
one-thread executor, so blocking index work never stalls the loop.

Two flavours:
- WorkQueue: in-memory only ("channel")
- PersistableWorkQueue: spills unprocessed tasks to the database on stop and
  restores them on start ("persistable-channel")
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from codesearch.core.errors import QueueError

if TYPE_CHECKING:
    from codesearch.config.models import QueueConfig
    from codesearch.index.store import RepoStore

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class IndexTask:
    """Index (or remove from the index) one repository."""

    repo_id: int
    is_delete: bool = False

    def is_valid(self) -> bool:
        return (
            isinstance(self.repo_id, int)
            and not isinstance(self.repo_id, bool)
            and self.repo_id > 0
            and isinstance(self.is_delete, bool)
        )


BatchHandler = Callable[[list[IndexTask]], None]
Reclaim = Callable[[], list[IndexTask]]


class QueueState(Enum):
    """Work queue state."""

    NEW = "new"
    RUNNING = "running"
    STOPPED = "stopped"


class WorkQueue:
    """
    In-memory bounded queue with one batched consumer.

    - push() waits while ``length`` tasks are buffered (backpressure)
    - batches hold 1..``batch_length`` tasks, FIFO
    - malformed tasks are logged and dropped, never delivered
    - consumer exceptions are logged; the worker keeps going
    """

    def __init__(self, name: str, length: int = 20, batch_length: int = 20) -> None:
        self.name = name
        self.batch_length = batch_length
        self._queue: asyncio.Queue[IndexTask] = asyncio.Queue(maxsize=length)
        self._handler: BatchHandler | None = None
        self._state = QueueState.NEW
        self._worker: asyncio.Task[None] | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._busy = False

    @property
    def state(self) -> QueueState:
        return self._state

    @property
    def size(self) -> int:
        return self._queue.qsize()

    def register_consumer(self, handler: BatchHandler) -> None:
        if self._handler is not None:
            raise QueueError.consumer_already_registered(self.name)
        self._handler = handler

    async def push(self, task: IndexTask) -> None:
        if self._state is QueueState.STOPPED:
            raise QueueError.closed(self.name)
        await self._queue.put(task)

    async def start(self) -> None:
        """Start the consumer worker."""
        if self._state is not QueueState.NEW:
            return
        if self._handler is None:
            raise QueueError.no_consumer(self.name)
        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix=f"codesearch-{self.name}",
        )
        self._state = QueueState.RUNNING
        self._worker = asyncio.get_running_loop().create_task(self._run())
        logger.info("queue_started", queue=self.name, batch_length=self.batch_length)

    async def join(self) -> None:
        """Wait until every task pushed so far has been handled."""
        await self._queue.join()

    async def stop(self, reclaim: Reclaim | None = None) -> list[IndexTask]:
        """Stop accepting work, finish the running batch, return unprocessed tasks.

        Args:
            reclaim: Called once the worker is idle. The tasks it returns were
                taken from the buffer earlier but never applied; they are
                handled as leftovers ahead of the still-buffered ones.
        """
        if self._state is QueueState.STOPPED:
            return []
        self._state = QueueState.STOPPED

        if self._worker is not None:
            if not self._busy:
                self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None

        leftovers = await self._drain()
        if reclaim is not None:
            leftovers = reclaim() + leftovers

        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

        await self._on_leftovers(leftovers)
        logger.info("queue_stopped", queue=self.name, unprocessed=len(leftovers))
        return leftovers

    async def _drain(self) -> list[IndexTask]:
        leftovers: list[IndexTask] = []
        while True:
            while True:
                try:
                    leftovers.append(self._queue.get_nowait())
                except asyncio.QueueEmpty:
                    break
                self._queue.task_done()
            # Let producers blocked on a full buffer complete their put
            await asyncio.sleep(0)
            if self._queue.empty():
                return leftovers

    async def _on_leftovers(self, leftovers: list[IndexTask]) -> None:
        if leftovers:
            logger.warning("queue_tasks_discarded", queue=self.name, count=len(leftovers))

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while self._state is QueueState.RUNNING:
            task = await self._queue.get()
            batch = [task]
            while len(batch) < self.batch_length:
                try:
                    batch.append(self._queue.get_nowait())
                except asyncio.QueueEmpty:
                    break

            self._busy = True
            try:
                await self._dispatch(loop, batch)
            finally:
                self._busy = False
                for _ in batch:
                    self._queue.task_done()

    async def _dispatch(self, loop: asyncio.AbstractEventLoop, batch: list[IndexTask]) -> None:
        valid: list[IndexTask] = []
        for task in batch:
            if isinstance(task, IndexTask) and task.is_valid():
                valid.append(task)
            else:
                logger.error("queue_task_dropped", queue=self.name, task=repr(task))
        if not valid:
            return

        assert self._handler is not None
        try:
            await loop.run_in_executor(self._executor, self._handler, valid)
        except Exception as e:
            logger.error("queue_batch_failed", queue=self.name, size=len(valid), error=str(e))


class PersistableWorkQueue(WorkQueue):
    """WorkQueue whose unprocessed tasks survive a restart via the database."""

    def __init__(
        self,
        name: str,
        store: RepoStore,
        length: int = 20,
        batch_length: int = 20,
    ) -> None:
        super().__init__(name, length=length, batch_length=batch_length)
        self._store = store
        self._restoring: list[IndexTask] = []
        self._restore_task: asyncio.Task[None] | None = None

    async def start(self) -> None:
        if self._state is not QueueState.NEW:
            return
        await super().start()

        loop = asyncio.get_running_loop()
        items = await loop.run_in_executor(None, self._store.pop_queue_items, self.name)
        if items:
            self._restoring = [IndexTask(repo_id, is_delete) for repo_id, is_delete in items]
            self._restore_task = loop.create_task(self._restore())
            logger.info("queue_restoring", queue=self.name, count=len(items))

    async def _restore(self) -> None:
        while self._restoring:
            await self._queue.put(self._restoring[0])
            self._restoring.pop(0)

    async def stop(self, reclaim: Reclaim | None = None) -> list[IndexTask]:
        if self._restore_task is not None:
            self._restore_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._restore_task
            self._restore_task = None
        return await super().stop(reclaim)

    async def _on_leftovers(self, leftovers: list[IndexTask]) -> None:
        pending = leftovers + self._restoring
        self._restoring = []
        if not pending:
            return
        items = [(task.repo_id, task.is_delete) for task in pending if task.is_valid()]
        loop = asyncio.get_running_loop()
        saved = await loop.run_in_executor(None, self._store.save_queue_items, self.name, items)
        logger.info("queue_persisted", queue=self.name, count=saved)


def create_queue(config: QueueConfig, store: RepoStore) -> WorkQueue:
    """Build the queue flavour selected by ``config.type``."""
    if config.type == "persistable-channel":
        return PersistableWorkQueue(
            config.name, store, length=config.length, batch_length=config.batch_length
        )
    return WorkQueue(config.name, length=config.length, batch_length=config.batch_length)
