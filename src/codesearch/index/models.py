"""SQLModel definitions for repository metadata and indexer bookkeeping.

Tables:
- repository: repositories known to the system (the indexer only reads it)
- repo_indexer_status: last commit indexed per repository and indexer type
- indexer_queue_item: tasks spilled by the persistable work queue on shutdown
"""

from enum import IntEnum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class RepoIndexerType(IntEnum):
    """Kind of indexer a status row belongs to."""

    CODE = 0
    STATS = 1


class Repository(SQLModel, table=True):
    """A repository whose HEAD tree can be indexed."""

    __tablename__ = "repository"

    id: int | None = Field(default=None, primary_key=True)
    owner_name: str = Field(index=True)
    name: str = Field(index=True)
    repo_path: str
    is_empty: bool = Field(default=False)

    @property
    def full_name(self) -> str:
        return f"{self.owner_name}/{self.name}"


class RepoIndexerStatus(SQLModel, table=True):
    """Indexing state of a repository for one indexer type.

    A missing row means the repository has not been indexed yet.
    """

    __tablename__ = "repo_indexer_status"
    __table_args__ = (UniqueConstraint("repo_id", "indexer_type"),)

    id: int | None = Field(default=None, primary_key=True)
    repo_id: int = Field(index=True)
    indexer_type: int = Field(default=RepoIndexerType.CODE, index=True)
    commit_sha: str = Field(default="")


class IndexerQueueItem(SQLModel, table=True):
    """A queued index task persisted across restarts."""

    __tablename__ = "indexer_queue_item"

    id: int | None = Field(default=None, primary_key=True)
    queue_name: str = Field(index=True)
    repo_id: int
    is_delete: bool = Field(default=False)
