"""Batch consumer applying index tasks to the backend held by the handle."""

from __future__ import annotations

import threading
from collections import OrderedDict
from collections.abc import Collection
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from codesearch.daemon.handle import HandleState

if TYPE_CHECKING:
    from codesearch.daemon.handle import IndexerHandle
    from codesearch.daemon.queue import IndexTask
    from codesearch.index.backend import SearchBackend

logger = structlog.get_logger()

REASON_NOT_READY = "not_ready"
REASON_FAILED = "failed"


@dataclass(frozen=True)
class DeadLetter:
    """A task that was not applied, and why."""

    task: IndexTask
    reason: str
    error: str | None = None


class DeadLetters:
    """Bounded record of tasks that were skipped or failed.

    Keyed by repository id: a newer task for the same repository replaces the
    older entry, and a later success clears it. When full, the oldest entry is
    evicted.
    """

    def __init__(self, capacity: int = 1000) -> None:
        self._capacity = capacity
        self._entries: OrderedDict[int, DeadLetter] = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def add(self, task: IndexTask, reason: str, error: str | None = None) -> None:
        with self._lock:
            self._entries.pop(task.repo_id, None)
            self._entries[task.repo_id] = DeadLetter(task=task, reason=reason, error=error)
            while len(self._entries) > self._capacity:
                evicted_id, _ = self._entries.popitem(last=False)
                logger.warning("dead_letter_evicted", repo_id=evicted_id)

    def discard(self, repo_id: int) -> None:
        with self._lock:
            self._entries.pop(repo_id, None)

    def entries(self) -> list[DeadLetter]:
        with self._lock:
            return list(self._entries.values())

    def take(
        self, reason: str | None = None, repo_ids: Collection[int] | None = None
    ) -> list[IndexTask]:
        """Remove and return tasks, optionally only those with ``reason`` or ``repo_ids``."""
        with self._lock:
            taken = [
                repo_id
                for repo_id, letter in self._entries.items()
                if (reason is None or letter.reason == reason)
                and (repo_ids is None or repo_id in repo_ids)
            ]
            return [self._entries.pop(repo_id).task for repo_id in taken]


class TaskConsumer:
    """Applies batches of index tasks through the indexer handle.

    Runs on the queue's executor thread. A handle that is not ready yet is a
    normal condition: the batch is logged and dead-lettered, not raised.
    """

    def __init__(self, handle: IndexerHandle, dead_letters: DeadLetters) -> None:
        self.handle = handle
        self.dead_letters = dead_letters

    def handle_batch(self, tasks: list[IndexTask]) -> None:
        with self.handle.lease() as backend:
            if backend is not None:
                self._apply(backend, tasks)
                return
            logger.warning("code_indexer_not_ready", skipped=len(tasks))
            for task in tasks:
                self.dead_letters.add(task, REASON_NOT_READY)

        # The index may have become ready while the batch was being parked,
        # after the controller already requeued the earlier not-ready tasks
        if self.handle.state is not HandleState.READY:
            return
        parked = self.dead_letters.take(REASON_NOT_READY, repo_ids={t.repo_id for t in tasks})
        if parked:
            logger.info("not_ready_tasks_reapplied", count=len(parked))
            self.handle_batch(parked)

    def _apply(self, backend: SearchBackend, tasks: list[IndexTask]) -> None:
        for task in tasks:
            logger.debug("index_task_process", repo_id=task.repo_id, is_delete=task.is_delete)
            try:
                if task.is_delete:
                    backend.delete(task.repo_id)
                else:
                    backend.index(task.repo_id)
            except Exception as e:
                logger.error(
                    "index_task_failed",
                    repo_id=task.repo_id,
                    is_delete=task.is_delete,
                    error=str(e),
                )
                self.dead_letters.add(task, REASON_FAILED, error=str(e))
            else:
                self.dead_letters.discard(task.repo_id)
