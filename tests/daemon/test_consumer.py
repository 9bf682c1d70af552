"""Tests for daemon/consumer.py."""

from __future__ import annotations

from unittest.mock import MagicMock

from codesearch.daemon.consumer import (
    REASON_FAILED,
    REASON_NOT_READY,
    DeadLetters,
    TaskConsumer,
)
from codesearch.daemon.handle import HandleState, IndexerHandle
from codesearch.daemon.queue import IndexTask


class TestDeadLetters:
    def test_newer_entry_for_same_repo_replaces_older(self) -> None:
        letters = DeadLetters()
        letters.add(IndexTask(1), REASON_NOT_READY)
        letters.add(IndexTask(1, is_delete=True), REASON_FAILED, error="boom")

        entries = letters.entries()

        assert len(entries) == 1
        assert entries[0].task == IndexTask(1, is_delete=True)
        assert entries[0].reason == REASON_FAILED
        assert entries[0].error == "boom"

    def test_capacity_evicts_oldest(self) -> None:
        letters = DeadLetters(capacity=2)
        for repo_id in (1, 2, 3):
            letters.add(IndexTask(repo_id), REASON_FAILED)

        assert [e.task.repo_id for e in letters.entries()] == [2, 3]

    def test_take_by_reason_leaves_others(self) -> None:
        # Given
        letters = DeadLetters()
        letters.add(IndexTask(1), REASON_NOT_READY)
        letters.add(IndexTask(2), REASON_FAILED)
        letters.add(IndexTask(3), REASON_NOT_READY)

        # When
        taken = letters.take(REASON_NOT_READY)

        # Then
        assert taken == [IndexTask(1), IndexTask(3)]
        assert [e.task.repo_id for e in letters.entries()] == [2]
        assert letters.take() == [IndexTask(2)]
        assert len(letters) == 0

    def test_discard_missing_is_noop(self) -> None:
        letters = DeadLetters()
        letters.discard(99)
        assert len(letters) == 0


class TestTaskConsumer:
    """Tests for TaskConsumer.handle_batch."""

    def test_given_unset_handle_when_batch_then_dead_lettered_not_ready(self) -> None:
        # Given
        letters = DeadLetters()
        consumer = TaskConsumer(IndexerHandle(), letters)

        # When
        consumer.handle_batch([IndexTask(1), IndexTask(2, is_delete=True)])

        # Then
        assert [(e.task.repo_id, e.reason) for e in letters.entries()] == [
            (1, REASON_NOT_READY),
            (2, REASON_NOT_READY),
        ]

    def test_given_ready_handle_then_tasks_applied_in_order(self) -> None:
        # Given
        handle = IndexerHandle()
        backend = MagicMock()
        handle.set(backend)
        consumer = TaskConsumer(handle, DeadLetters())

        # When
        consumer.handle_batch([IndexTask(1), IndexTask(1, is_delete=True), IndexTask(2)])

        # Then
        assert [c[0] for c in backend.method_calls] == ["index", "delete", "index"]
        backend.index.assert_any_call(1)
        backend.delete.assert_called_once_with(1)
        backend.index.assert_called_with(2)

    def test_given_failing_task_then_rest_of_batch_still_applied(self) -> None:
        # Given
        handle = IndexerHandle()
        backend = MagicMock()
        backend.index.side_effect = [RuntimeError("corrupt tree"), None]
        handle.set(backend)
        letters = DeadLetters()
        consumer = TaskConsumer(handle, letters)

        # When
        consumer.handle_batch([IndexTask(1), IndexTask(2)])

        # Then
        assert backend.index.call_count == 2
        (entry,) = letters.entries()
        assert entry.task == IndexTask(1)
        assert entry.reason == REASON_FAILED
        assert entry.error == "corrupt tree"

    def test_given_success_then_previous_dead_letter_cleared(self) -> None:
        handle = IndexerHandle()
        handle.set(MagicMock())
        letters = DeadLetters()
        letters.add(IndexTask(1), REASON_FAILED, error="old")
        consumer = TaskConsumer(handle, letters)

        consumer.handle_batch([IndexTask(1)])

        assert len(letters) == 0

    def test_given_closed_handle_then_backend_not_touched(self) -> None:
        handle = IndexerHandle()
        backend = MagicMock()
        handle.set(backend)
        handle.close()
        letters = DeadLetters()

        TaskConsumer(handle, letters).handle_batch([IndexTask(1)])

        backend.index.assert_not_called()
        assert letters.entries()[0].reason == REASON_NOT_READY

    def test_given_index_ready_while_batch_parked_then_batch_applied(self) -> None:
        # Given: the backend is published between the lease and the parking
        handle = IndexerHandle()
        backend = MagicMock()

        class ReadyOnFirstAdd(DeadLetters):
            def add(self, task: IndexTask, reason: str, error: str | None = None) -> None:
                super().add(task, reason, error)
                if reason == REASON_NOT_READY and handle.state is HandleState.UNSET:
                    handle.set(backend)

        letters = ReadyOnFirstAdd()
        letters.add(IndexTask(9), REASON_FAILED, error="unrelated")

        # When
        TaskConsumer(handle, letters).handle_batch([IndexTask(1), IndexTask(2)])

        # Then
        assert [c.args[0] for c in backend.index.call_args_list] == [1, 2]
        assert [e.task.repo_id for e in letters.entries()] == [9]
