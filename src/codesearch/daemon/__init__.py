"""codesearch daemon - work queue, indexer handle and lifecycle control."""

from codesearch.daemon.backfill import BackfillResult, BackfillWalker
from codesearch.daemon.consumer import DeadLetters, TaskConsumer
from codesearch.daemon.graceful import GracefulManager
from codesearch.daemon.handle import HandleState, IndexerHandle
from codesearch.daemon.lifecycle import ControllerState, IndexerController
from codesearch.daemon.queue import IndexTask, PersistableWorkQueue, WorkQueue, create_queue

__all__ = [
    "BackfillResult",
    "BackfillWalker",
    "ControllerState",
    "DeadLetters",
    "GracefulManager",
    "HandleState",
    "IndexTask",
    "IndexerController",
    "IndexerHandle",
    "PersistableWorkQueue",
    "TaskConsumer",
    "WorkQueue",
    "create_queue",
]
