"""Synchronized holder for the single active search backend."""

from __future__ import annotations

import threading
from collections.abc import Generator
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING

import structlog

from codesearch.core.errors import IndexerError

if TYPE_CHECKING:
    from codesearch.index.backend import SearchBackend


logger = structlog.get_logger()


class HandleState(Enum):
    """Indexer handle state."""

    UNSET = "unset"
    READY = "ready"
    CLOSED = "closed"


class IndexerHandle:
    """
    Holds the live backend and its readiness.

    Design:
    - ``get`` never waits on backend work; UNSET is a normal answer
    - ``set`` moves UNSET -> READY once; a backend set after close is released
    - ``close`` is idempotent and release the backend exactly once
    - ``lease`` counts in-flight users so ``close`` never frees a backend mid-write

    Safe to call from the event loop and executor threads at the same time.
    """

    def __init__(self, close_timeout: float = 5.0) -> None:
        self._cond = threading.Condition()
        self._state = HandleState.UNSET
        self._backend: SearchBackend | None = None
        self._leases = 0
        self._close_timeout = close_timeout

    @property
    def state(self) -> HandleState:
        with self._cond:
            return self._state

    def get(self) -> tuple[SearchBackend | None, bool]:
        with self._cond:
            if self._state is HandleState.READY:
                return self._backend, True
            return None, False

    def set(self, backend: SearchBackend) -> bool:
        """Publish ``backend``. Returns False if the handle was already closed."""
        with self._cond:
            if self._state is HandleState.READY:
                raise IndexerError.already_set()
            if self._state is HandleState.UNSET:
                self._backend = backend
                self._state = HandleState.READY
                return True

        # Closed before the backend finished opening
        logger.info("indexer_set_after_close")
        backend.close()
        return False

    def close(self) -> bool:
        """Close the handle. Only the call that performs the transition returns True.

        Blocks while leases are held; event-loop callers ``detach`` and run
        ``release`` on a worker thread.
        """
        closed, backend = self.detach()
        if backend is not None:
            self.release(backend)
        return closed

    def detach(self) -> tuple[bool, SearchBackend | None]:
        """Move to CLOSED and hand back the backend the caller must ``release``.

        New leases yield None as soon as this returns.
        """
        with self._cond:
            if self._state is HandleState.CLOSED:
                return False, None
            backend = self._backend
            self._backend = None
            self._state = HandleState.CLOSED
            return True, backend

    def release(self, backend: SearchBackend) -> None:
        """Wait (bounded) for in-flight leases, then close ``backend``."""
        with self._cond:
            if self._leases:
                drained = self._cond.wait_for(
                    lambda: self._leases == 0, timeout=self._close_timeout
                )
                if not drained:
                    logger.warning("indexer_close_leases_pending", leases=self._leases)
        backend.close()

    @contextmanager
    def lease(self) -> Generator[SearchBackend | None, None, None]:
        """Borrow the backend for one operation; yields None when not ready."""
        with self._cond:
            backend = self._backend if self._state is HandleState.READY else None
            if backend is not None:
                self._leases += 1
        try:
            yield backend
        finally:
            if backend is not None:
                with self._cond:
                    self._leases -= 1
                    self._cond.notify_all()
