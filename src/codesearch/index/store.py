"""Repository metadata store consumed by the indexing pipeline.

Wraps the handful of queries the indexer needs: table emptiness and max id
checks for the backfill, the unindexed-repository page query, indexer status
bookkeeping, and spill storage for the persistable work queue.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, func
from sqlmodel import Session, SQLModel, col, select

from codesearch.index.models import (
    IndexerQueueItem,
    RepoIndexerStatus,
    RepoIndexerType,
    Repository,
)

if TYPE_CHECKING:
    from codesearch.index.db import Database

logger = structlog.get_logger()

_TABLES: dict[str, type[SQLModel]] = {
    "repository": Repository,
    "repo_indexer_status": RepoIndexerStatus,
    "indexer_queue_item": IndexerQueueItem,
}


def _model_for(table: str) -> type[SQLModel]:
    try:
        return _TABLES[table]
    except KeyError:
        raise ValueError(f"Unknown table: {table}") from None


class RepoStore:
    """Repository and indexer-status queries over a Database."""

    def __init__(self, db: Database) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Generic table helpers
    # ------------------------------------------------------------------

    def is_table_not_empty(self, table: str) -> bool:
        model = _model_for(table)
        with self.db.session() as session:
            return session.exec(select(model).limit(1)).first() is not None

    def get_max_id(self, table: str) -> int:
        """Largest primary key in ``table``, or 0 when empty."""
        model = _model_for(table)
        with self.db.session() as session:
            max_id = session.exec(select(func.max(model.id))).one()  # type: ignore[attr-defined]
        return int(max_id or 0)

    def delete_all_records(self, table: str) -> int:
        model = _model_for(table)

        def _delete(session: Session) -> int:
            result = session.execute(delete(model))
            return int(result.rowcount or 0)

        deleted = self.db.write(_delete)
        logger.debug("table_cleared", table=table, rows=deleted)
        return deleted

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def create_repository(self, owner_name: str, name: str, repo_path: str) -> int:
        def _create(session: Session) -> int:
            repo = Repository(owner_name=owner_name, name=name, repo_path=repo_path)
            session.add(repo)
            session.flush()
            assert repo.id is not None
            return repo.id

        return self.db.write(_create)

    def get_repository(self, repo_id: int) -> Repository | None:
        with self.db.session() as session:
            repo = session.get(Repository, repo_id)
            if repo is not None:
                session.expunge(repo)
            return repo

    def get_unindexed_repos(
        self,
        indexer_type: RepoIndexerType,
        max_repo_id: int,
        offset: int,
        limit: int,
    ) -> list[int]:
        """Ids of non-empty repositories without a status row, highest first.

        Args:
            indexer_type: Which indexer's status rows to consult.
            max_repo_id: Only ids ``<= max_repo_id`` are returned; 0 means no bound.
            offset: Rows to skip.
            limit: Page size.
        """
        stmt = (
            select(Repository.id)
            .outerjoin(
                RepoIndexerStatus,
                (col(RepoIndexerStatus.repo_id) == col(Repository.id))
                & (col(RepoIndexerStatus.indexer_type) == int(indexer_type)),
            )
            .where(col(RepoIndexerStatus.id).is_(None))
            .where(col(Repository.is_empty).is_(False))
        )
        if max_repo_id > 0:
            stmt = stmt.where(col(Repository.id) <= max_repo_id)
        stmt = stmt.order_by(col(Repository.id).desc()).offset(offset).limit(limit)

        with self.db.session() as session:
            return [int(repo_id) for repo_id in session.exec(stmt).all() if repo_id is not None]

    # ------------------------------------------------------------------
    # Indexer status
    # ------------------------------------------------------------------

    def get_indexer_status(
        self, repo_id: int, indexer_type: RepoIndexerType
    ) -> RepoIndexerStatus | None:
        with self.db.session() as session:
            status = session.exec(
                select(RepoIndexerStatus)
                .where(RepoIndexerStatus.repo_id == repo_id)
                .where(RepoIndexerStatus.indexer_type == int(indexer_type))
            ).first()
            if status is not None:
                session.expunge(status)
            return status

    def update_indexer_status(
        self, repo_id: int, indexer_type: RepoIndexerType, commit_sha: str
    ) -> None:
        def _upsert(session: Session) -> None:
            status = session.exec(
                select(RepoIndexerStatus)
                .where(RepoIndexerStatus.repo_id == repo_id)
                .where(RepoIndexerStatus.indexer_type == int(indexer_type))
            ).first()
            if status is None:
                status = RepoIndexerStatus(
                    repo_id=repo_id, indexer_type=int(indexer_type), commit_sha=commit_sha
                )
            else:
                status.commit_sha = commit_sha
            session.add(status)

        self.db.write(_upsert)

    def delete_indexer_status(self, repo_id: int) -> None:
        def _delete(session: Session) -> None:
            session.execute(
                delete(RepoIndexerStatus).where(col(RepoIndexerStatus.repo_id) == repo_id)
            )

        self.db.write(_delete)

    # ------------------------------------------------------------------
    # Persisted queue items
    # ------------------------------------------------------------------

    def save_queue_items(self, queue_name: str, items: list[tuple[int, bool]]) -> int:
        if not items:
            return 0

        def _save(session: Session) -> int:
            for repo_id, is_delete in items:
                session.add(
                    IndexerQueueItem(queue_name=queue_name, repo_id=repo_id, is_delete=is_delete)
                )
            return len(items)

        return self.db.write(_save)

    def pop_queue_items(self, queue_name: str) -> list[tuple[int, bool]]:
        """Remove and return persisted items for ``queue_name`` in insertion order."""

        def _pop(session: Session) -> list[tuple[int, bool]]:
            rows = session.exec(
                select(IndexerQueueItem)
                .where(IndexerQueueItem.queue_name == queue_name)
                .order_by(col(IndexerQueueItem.id))
            ).all()
            items = [(row.repo_id, row.is_delete) for row in rows]
            session.execute(
                delete(IndexerQueueItem).where(col(IndexerQueueItem.queue_name) == queue_name)
            )
            return items

        return self.db.write(_pop)
