"""Process-wide shutdown signal and termination hooks."""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Callable

import structlog

logger = structlog.get_logger()


class GracefulManager:
    """
    Broadcast shutdown signal plus cleanup hooks run before exit.

    - shutdown() fires the signal once; every poller sees it
    - run_at_terminate() hooks run once, in reverse registration order
    """

    def __init__(self) -> None:
        self._shutdown = asyncio.Event()
        self._terminate_hooks: list[Callable[[], None]] = []
        self._terminated = False

    def is_shutdown(self) -> bool:
        return self._shutdown.is_set()

    async def wait_for_shutdown(self) -> None:
        await self._shutdown.wait()

    def shutdown(self) -> None:
        if self._shutdown.is_set():
            return
        logger.info("shutdown_requested")
        self._shutdown.set()

    def run_at_terminate(self, hook: Callable[[], None]) -> None:
        if self._terminated:
            hook()
            return
        self._terminate_hooks.append(hook)

    def terminate(self) -> None:
        """Fire shutdown (if not already) and run the termination hooks."""
        self.shutdown()
        if self._terminated:
            return
        self._terminated = True
        while self._terminate_hooks:
            hook = self._terminate_hooks.pop()
            try:
                hook()
            except Exception as e:
                logger.error("terminate_hook_failed", hook=repr(hook), error=str(e))

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Trigger shutdown on SIGINT/SIGTERM."""
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._on_signal, sig)

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info("shutdown_signal_received", signal=sig.name)
        self.shutdown()
