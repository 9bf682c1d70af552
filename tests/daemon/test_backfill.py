"""Tests for daemon/backfill.py."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from codesearch.core.errors import ErrorCode, IndexerError
from codesearch.daemon.backfill import BackfillWalker
from codesearch.daemon.queue import IndexTask
from codesearch.index.models import RepoIndexerType
from codesearch.index.store import RepoStore


class RecordingQueue:
    """Stands in for WorkQueue.push; runs ``on_push`` after each task."""

    def __init__(self, on_push=None) -> None:
        self.tasks: list[IndexTask] = []
        self._on_push = on_push

    async def push(self, task: IndexTask) -> None:
        self.tasks.append(task)
        if self._on_push is not None:
            self._on_push(task)


def _add_repos(store: RepoStore, count: int) -> list[int]:
    return [store.create_repository("acme", f"r{i}", f"/srv/r{i}") for i in range(count)]


class TestBackfillWalker:
    """Tests for BackfillWalker."""

    @pytest.mark.asyncio
    async def test_given_three_repos_and_page_size_one_then_enqueued_highest_first(
        self, store: RepoStore
    ) -> None:
        # Given
        assert _add_repos(store, 3) == [1, 2, 3]
        spy = MagicMock(wraps=store)
        queue = RecordingQueue()
        walker = BackfillWalker(store=spy, queue=queue, is_shutdown=lambda: False, page_size=1)

        # When
        result = await walker.run()

        # Then
        assert [t.repo_id for t in queue.tasks] == [3, 2, 1]
        assert all(not t.is_delete for t in queue.tasks)
        cursors = [c.args[1] for c in spy.get_unindexed_repos.call_args_list]
        assert cursors == [3, 2, 1]
        assert result.completed is True
        assert result.enqueued == 3
        assert result.cursor == 0

    @pytest.mark.asyncio
    async def test_given_shutdown_after_first_push_then_no_more_tasks(
        self, store: RepoStore
    ) -> None:
        # Given
        _add_repos(store, 3)
        stopped = False

        def _stop(_task: IndexTask) -> None:
            nonlocal stopped
            stopped = True

        queue = RecordingQueue(on_push=_stop)
        walker = BackfillWalker(store=store, queue=queue, is_shutdown=lambda: stopped, page_size=1)

        # When
        result = await walker.run()

        # Then
        assert [t.repo_id for t in queue.tasks] == [3]
        assert result.completed is False
        assert result.cursor == 2

    @pytest.mark.asyncio
    async def test_given_empty_repository_table_then_returns_immediately(self) -> None:
        store = MagicMock()
        store.is_table_not_empty.return_value = False
        queue = RecordingQueue()

        result = await BackfillWalker(store=store, queue=queue, is_shutdown=lambda: False).run()

        assert queue.tasks == []
        assert result.enqueued == 0
        assert result.completed is True
        store.delete_all_records.assert_not_called()
        store.get_unindexed_repos.assert_not_called()

    @pytest.mark.asyncio
    async def test_stale_status_rows_are_cleared_before_walking(self, store: RepoStore) -> None:
        # Given: status rows left over from a previous index
        ids = _add_repos(store, 2)
        for repo_id in ids:
            store.update_indexer_status(repo_id, RepoIndexerType.CODE, "stale")
        queue = RecordingQueue()

        # When
        await BackfillWalker(store=store, queue=queue, is_shutdown=lambda: False).run()

        # Then
        assert sorted(t.repo_id for t in queue.tasks) == ids

    @pytest.mark.asyncio
    async def test_repositories_created_during_walk_are_not_enqueued(
        self, store: RepoStore
    ) -> None:
        # Given
        _add_repos(store, 3)
        created: list[int] = []

        def _create_more(_task: IndexTask) -> None:
            created.append(store.create_repository("acme", f"new{len(created)}", "/srv/new"))

        queue = RecordingQueue(on_push=_create_more)

        # When
        await BackfillWalker(store=store, queue=queue, is_shutdown=lambda: False, page_size=2).run()

        # Then
        pushed = [t.repo_id for t in queue.tasks]
        assert pushed == [3, 2, 1]
        assert not set(created) & set(pushed)
        assert len(pushed) == len(set(pushed))

    @pytest.mark.asyncio
    async def test_given_shutdown_before_start_then_nothing_enqueued(
        self, store: RepoStore
    ) -> None:
        _add_repos(store, 2)
        queue = RecordingQueue()

        result = await BackfillWalker(store=store, queue=queue, is_shutdown=lambda: True).run()

        assert queue.tasks == []
        assert result.completed is False

    @pytest.mark.asyncio
    async def test_store_error_is_wrapped(self) -> None:
        store = MagicMock()
        store.is_table_not_empty.side_effect = RuntimeError("disk I/O error")

        with pytest.raises(IndexerError) as exc_info:
            walker = BackfillWalker(store=store, queue=RecordingQueue(), is_shutdown=lambda: False)
            await walker.run()

        assert exc_info.value.code == ErrorCode.INDEX_BACKFILL_FAILED
        assert "disk I/O error" in exc_info.value.message
