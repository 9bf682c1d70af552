"""Repository indexer lifecycle: startup, startup timeout, shutdown race."""

from __future__ import annotations

import asyncio
import contextlib
import os
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from codesearch.core.errors import IndexerError
from codesearch.daemon.backfill import BackfillResult, BackfillWalker
from codesearch.daemon.consumer import REASON_NOT_READY

if TYPE_CHECKING:
    from codesearch.config.models import CodeSearchConfig
    from codesearch.daemon.consumer import DeadLetters
    from codesearch.daemon.graceful import GracefulManager
    from codesearch.daemon.handle import IndexerHandle
    from codesearch.daemon.queue import IndexTask, WorkQueue
    from codesearch.index.backend import BackendOpener
    from codesearch.index.store import RepoStore

logger = structlog.get_logger()


class ControllerState(Enum):
    """Indexer lifecycle state."""

    NOT_STARTED = "not_started"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"
    SHUTDOWN_REQUESTED = "shutdown_requested"
    CLOSED = "closed"


@dataclass
class IndexerController:
    """
    Orchestrates indexer startup against process shutdown.

    Components:
    - IndexerHandle: owns the backend once it is open
    - WorkQueue: consumer starts immediately, before the backend is ready
    - BackendOpener: opens or creates the on-disk index in a worker thread
    - BackfillWalker: launched only when the index was freshly created

    Startup publishes one result (elapsed seconds, or None on failure). A
    supervisor waits for whichever comes first: shutdown, that result, or
    the startup timeout. Every branch closes through the idempotent handle.
    """

    config: CodeSearchConfig
    handle: IndexerHandle
    queue: WorkQueue
    store: RepoStore
    graceful: GracefulManager
    opener: BackendOpener | None = None
    dead_letters: DeadLetters | None = None

    _state: ControllerState = field(default=ControllerState.NOT_STARTED, init=False)
    _cancelled: asyncio.Event = field(default_factory=asyncio.Event, init=False)
    _init_result: asyncio.Future[float | None] | None = field(default=None, init=False)
    _init_task: asyncio.Task[None] | None = field(default=None, init=False)
    _supervisor_task: asyncio.Task[None] | None = field(default=None, init=False)
    _backfill_task: asyncio.Task[BackfillResult | None] | None = field(default=None, init=False)
    _fatal: IndexerError | None = field(default=None, init=False)
    _release: asyncio.Future[None] | None = field(default=None, init=False)

    @property
    def state(self) -> ControllerState:
        return self._state

    @property
    def backfill_task(self) -> asyncio.Task[BackfillResult | None] | None:
        return self._backfill_task

    def is_cancelled(self) -> bool:
        return self._cancelled.is_set() or self.graceful.is_shutdown()

    async def start(self) -> None:
        """Start the queue and begin opening the index in the background."""
        if self._state is not ControllerState.NOT_STARTED:
            return

        if not self.config.indexer.enabled:
            self.handle.close()
            self._state = ControllerState.CLOSED
            logger.info("repo_indexer_disabled")
            return

        if self.opener is None:
            raise IndexerError.unknown_backend(self.config.indexer.repo_type, [])

        self.graceful.run_at_terminate(self._on_terminate)

        await self.queue.start()

        loop = asyncio.get_running_loop()
        self._state = ControllerState.INITIALIZING
        self._init_result = loop.create_future()
        self._init_task = loop.create_task(self._initialize())
        self._supervisor_task = loop.create_task(self._supervise())

    async def wait_started(self) -> None:
        """Wait for startup to settle; raise the fatal error if it failed."""
        if self._supervisor_task is not None:
            await asyncio.shield(self._supervisor_task)
        if self._fatal is not None:
            raise self._fatal

    async def stop(self) -> None:
        """Cancel startup/backfill, stop the queue and close the index."""
        self._cancelled.set()

        if self._supervisor_task is not None and not self._supervisor_task.done():
            self._supervisor_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._supervisor_task

        if self._backfill_task is not None and not self._backfill_task.done():
            with contextlib.suppress(asyncio.CancelledError):
                await self._backfill_task

        # Tasks the consumer parked while the handle was closed go out with the
        # queue leftovers, so a persistable queue keeps them for the next start
        await self.queue.stop(reclaim=self._take_not_ready)
        if self._state in (ControllerState.INITIALIZING, ControllerState.READY):
            self._state = ControllerState.SHUTDOWN_REQUESTED
        await self._close("stopped")

        # The opener thread cannot be interrupted; once the handle is closed a
        # late backend is released by handle.set()
        if self._init_task is not None and not self._init_task.done():
            await asyncio.wait({self._init_task}, timeout=self.config.indexer.close_timeout_sec)

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def _initialize(self) -> None:
        assert self._init_result is not None
        start = time.monotonic()
        index_path = self.config.index_path
        logger.info("repo_indexer_initializing", pid=os.getpid(), path=str(index_path))

        loop = asyncio.get_running_loop()
        try:
            backend, created = await loop.run_in_executor(
                None, self.opener, index_path, self.store, self.config.indexer
            )
        except Exception as e:
            self._fatal = IndexerError.startup_failed(str(index_path), str(e))
            logger.error(
                "repo_indexer_init_failed", pid=os.getpid(), path=str(index_path), error=str(e)
            )
            self._cancelled.set()
            self.handle.close()
            self._publish(None)
            return

        if not self.handle.set(backend):
            # Closed by shutdown or timeout while opening
            self._publish(None)
            return

        if created:
            self._backfill_task = loop.create_task(self._run_backfill())

        self._publish(time.monotonic() - start)

    def _publish(self, result: float | None) -> None:
        if self._init_result is not None and not self._init_result.done():
            self._init_result.set_result(result)

    async def _supervise(self) -> None:
        assert self._init_result is not None
        timeout = self.config.indexer.startup_timeout_sec or None

        shutdown = asyncio.ensure_future(self.graceful.wait_for_shutdown())
        try:
            done, _ = await asyncio.wait(
                {self._init_result, shutdown},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            shutdown.cancel()

        if self._init_result in done:
            duration = self._init_result.result()
            if duration is None:
                if self._fatal is None:
                    # Handle closed by a terminate hook while the index was opening
                    self._state = ControllerState.SHUTDOWN_REQUESTED
                    await self._close("shutdown")
                else:
                    logger.warning("repo_indexer_init_failed_closing")
                    self._state = ControllerState.FAILED
                    await self._close("init_failed")
                return
            self._state = ControllerState.READY
            logger.info("repo_indexer_initialized", duration_sec=round(duration, 3))
            await self._requeue_not_ready()
            return

        if shutdown in done:
            logger.warning("repo_indexer_shutdown_before_ready")
            self._state = ControllerState.SHUTDOWN_REQUESTED
            self._cancelled.set()
            await self._close("shutdown")
            return

        assert timeout is not None
        self._fatal = IndexerError.startup_timeout(timeout)
        self._state = ControllerState.FAILED
        self._cancelled.set()
        await self._close("timeout")
        logger.error("repo_indexer_init_timed_out", timeout_sec=timeout)

    async def _close(self, reason: str) -> None:
        self._detach(reason)
        if self._release is not None:
            await asyncio.shield(self._release)

    def _detach(self, reason: str) -> None:
        """Close the handle now; drain its leases and release the backend off the loop."""
        closed, backend = self.handle.detach()
        if backend is not None:
            loop = asyncio.get_running_loop()
            self._release = loop.run_in_executor(None, self.handle.release, backend)
        if self._state in (ControllerState.READY, ControllerState.SHUTDOWN_REQUESTED):
            self._state = ControllerState.CLOSED
        if closed:
            logger.info("repo_indexer_closed", pid=os.getpid(), reason=reason)

    def _on_terminate(self) -> None:
        logger.debug("repo_indexer_closing")
        self._cancelled.set()
        # stop() waits for the release
        self._detach("terminate")

    # ------------------------------------------------------------------
    # Post-ready work
    # ------------------------------------------------------------------

    async def _run_backfill(self) -> BackfillResult | None:
        walker = BackfillWalker(
            store=self.store,
            queue=self.queue,
            is_shutdown=self.is_cancelled,
            page_size=self.config.backfill.page_size,
        )
        try:
            return await walker.run()
        except IndexerError as e:
            logger.error("backfill_failed", error=str(e))
            return None

    def _take_not_ready(self) -> list[IndexTask]:
        if self.dead_letters is None:
            return []
        tasks = self.dead_letters.take(REASON_NOT_READY)
        if tasks:
            logger.info("not_ready_tasks_reclaimed", count=len(tasks))
        return tasks

    async def _requeue_not_ready(self) -> None:
        if self.dead_letters is None:
            return
        tasks = self.dead_letters.take(REASON_NOT_READY)
        if tasks:
            logger.info("requeue_not_ready_tasks", count=len(tasks))
        for task in tasks:
            await self.queue.push(task)
