"""Tests for index/store.py."""

from __future__ import annotations

import pytest

from codesearch.index.models import RepoIndexerType
from codesearch.index.store import RepoStore


def _add_repos(store: RepoStore, count: int) -> list[int]:
    return [store.create_repository("acme", f"repo{i}", f"/srv/repo{i}") for i in range(count)]


class TestTableHelpers:
    def test_given_empty_table_then_not_empty_is_false_and_max_id_zero(
        self, store: RepoStore
    ) -> None:
        assert store.is_table_not_empty("repository") is False
        assert store.get_max_id("repository") == 0

    def test_given_repositories_then_max_id_is_highest(self, store: RepoStore) -> None:
        ids = _add_repos(store, 3)
        assert store.is_table_not_empty("repository") is True
        assert store.get_max_id("repository") == max(ids)

    def test_delete_all_records_clears_table(self, store: RepoStore) -> None:
        # Given
        for repo_id in _add_repos(store, 2):
            store.update_indexer_status(repo_id, RepoIndexerType.CODE, "abc")

        # When
        deleted = store.delete_all_records("repo_indexer_status")

        # Then
        assert deleted == 2
        assert store.is_table_not_empty("repo_indexer_status") is False
        assert store.is_table_not_empty("repository") is True

    def test_unknown_table_raises(self, store: RepoStore) -> None:
        with pytest.raises(ValueError, match="Unknown table"):
            store.get_max_id("users")


class TestRepositories:
    def test_create_and_get_repository(self, store: RepoStore) -> None:
        repo_id = store.create_repository("acme", "widgets", "/srv/widgets")

        repo = store.get_repository(repo_id)

        assert repo is not None
        assert repo.full_name == "acme/widgets"
        assert repo.repo_path == "/srv/widgets"
        assert repo.is_empty is False

    def test_get_missing_repository_returns_none(self, store: RepoStore) -> None:
        assert store.get_repository(42) is None


class TestGetUnindexedRepos:
    def test_given_no_status_rows_then_returns_ids_descending(self, store: RepoStore) -> None:
        ids = _add_repos(store, 3)

        result = store.get_unindexed_repos(RepoIndexerType.CODE, max(ids), 0, 10)

        assert result == sorted(ids, reverse=True)

    def test_indexed_repositories_are_excluded(self, store: RepoStore) -> None:
        # Given
        first, second, third = _add_repos(store, 3)
        store.update_indexer_status(second, RepoIndexerType.CODE, "abc")

        # When
        result = store.get_unindexed_repos(RepoIndexerType.CODE, third, 0, 10)

        # Then
        assert result == [third, first]

    def test_status_of_other_indexer_type_does_not_count(self, store: RepoStore) -> None:
        (repo_id,) = _add_repos(store, 1)
        store.update_indexer_status(repo_id, RepoIndexerType.STATS, "abc")

        assert store.get_unindexed_repos(RepoIndexerType.CODE, repo_id, 0, 10) == [repo_id]

    def test_max_repo_id_bounds_the_page(self, store: RepoStore) -> None:
        ids = _add_repos(store, 5)

        result = store.get_unindexed_repos(RepoIndexerType.CODE, ids[2], 0, 2)

        assert result == [ids[2], ids[1]]

    def test_empty_repositories_are_skipped(self, store: RepoStore, temp_db) -> None:
        from codesearch.index.models import Repository

        (repo_id,) = _add_repos(store, 1)

        def _mark_empty(session) -> None:
            repo = session.get(Repository, repo_id)
            repo.is_empty = True
            session.add(repo)

        temp_db.write(_mark_empty)

        assert store.get_unindexed_repos(RepoIndexerType.CODE, repo_id, 0, 10) == []


class TestIndexerStatus:
    def test_update_is_an_upsert(self, store: RepoStore) -> None:
        (repo_id,) = _add_repos(store, 1)

        store.update_indexer_status(repo_id, RepoIndexerType.CODE, "aaa")
        store.update_indexer_status(repo_id, RepoIndexerType.CODE, "bbb")

        status = store.get_indexer_status(repo_id, RepoIndexerType.CODE)
        assert status is not None
        assert status.commit_sha == "bbb"
        assert store.delete_all_records("repo_indexer_status") == 1

    def test_delete_indexer_status(self, store: RepoStore) -> None:
        (repo_id,) = _add_repos(store, 1)
        store.update_indexer_status(repo_id, RepoIndexerType.CODE, "aaa")

        store.delete_indexer_status(repo_id)

        assert store.get_indexer_status(repo_id, RepoIndexerType.CODE) is None


class TestQueueItems:
    def test_pop_returns_items_in_order_and_removes_them(self, store: RepoStore) -> None:
        store.save_queue_items("code_indexer", [(3, False), (1, True), (2, False)])
        store.save_queue_items("other", [(9, False)])

        assert store.pop_queue_items("code_indexer") == [(3, False), (1, True), (2, False)]
        assert store.pop_queue_items("code_indexer") == []
        assert store.pop_queue_items("other") == [(9, False)]

    def test_save_nothing_returns_zero(self, store: RepoStore) -> None:
        assert store.save_queue_items("code_indexer", []) == 0
