"""Tests for index/db.py."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from codesearch.index.db import Database


class TestDatabase:
    def test_creates_parent_directory_and_uses_wal(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "nested" / "dir" / "test.db")
        db.create_all()

        with db.session() as session:
            mode = session.execute(text("PRAGMA journal_mode")).scalar()

        assert (tmp_path / "nested" / "dir").is_dir()
        assert str(mode).lower() == "wal"
        db.dispose()

    def test_write_commits_and_returns_result(self, temp_db: Database) -> None:
        def _insert(session) -> int:
            session.execute(
                text(
                    "INSERT INTO repository (owner_name, name, repo_path, is_empty) "
                    "VALUES ('o', 'n', '/p', 0)"
                )
            )
            return 7

        assert temp_db.write(_insert) == 7
        with temp_db.session() as session:
            assert session.execute(text("SELECT COUNT(*) FROM repository")).scalar() == 1

    def test_write_retries_on_locked_database(self, tmp_path: Path) -> None:
        # Given
        db = Database(tmp_path / "retry.db", retry_base_delay=0.0)
        locked = OperationalError("stmt", {}, Exception("database is locked"))
        fn = MagicMock(side_effect=[locked, locked, "done"])

        # When
        result = db.write(fn)

        # Then
        assert result == "done"
        assert fn.call_count == 3
        db.dispose()

    def test_write_gives_up_after_max_retries(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "retry.db", retry_base_delay=0.0)
        locked = OperationalError("stmt", {}, Exception("database is locked"))
        fn = MagicMock(side_effect=locked)

        with pytest.raises(OperationalError):
            db.write(fn, max_retries=1)

        assert fn.call_count == 2
        db.dispose()

    def test_other_operational_errors_are_not_retried(self, tmp_path: Path) -> None:
        db = Database(tmp_path / "retry.db", retry_base_delay=0.0)
        fn = MagicMock(side_effect=OperationalError("stmt", {}, Exception("no such table")))

        with pytest.raises(OperationalError):
            db.write(fn)

        assert fn.call_count == 1
        db.dispose()
