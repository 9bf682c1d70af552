"""Shared fixtures: SQLite store and throwaway git repositories."""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path

import pygit2
import pytest

from codesearch.config.models import CodeSearchConfig
from codesearch.index.db import Database
from codesearch.index.store import RepoStore

RepoFactory = Callable[..., Path]


def commit_files(repo_path: Path, files: dict[str, str], message: str = "Update") -> str:
    """Write ``files`` into the work tree, commit them on HEAD and return the commit id."""
    repo = pygit2.Repository(str(repo_path))
    for name, content in files.items():
        path = repo_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        repo.index.add(name)
    repo.index.write()
    tree = repo.index.write_tree()
    sig = pygit2.Signature("Test User", "test@example.com")
    parents = [] if repo.head_is_unborn else [repo.head.target]
    return str(repo.create_commit("HEAD", sig, sig, message, tree, parents))


@pytest.fixture
def temp_db(tmp_path: Path) -> Generator[Database, None, None]:
    """Create a temporary database with schema."""
    db = Database(tmp_path / "test.db")
    db.create_all()
    yield db
    db.dispose()


@pytest.fixture
def store(temp_db: Database) -> RepoStore:
    return RepoStore(temp_db)


@pytest.fixture
def make_repo(tmp_path: Path) -> RepoFactory:
    """Factory creating a git repository with one commit holding ``files``."""

    def _make(name: str = "repo", files: dict[str, str] | None = None) -> Path:
        repo_path = tmp_path / "repos" / name
        repo_path.mkdir(parents=True)
        repo = pygit2.init_repository(str(repo_path))
        repo.config["user.name"] = "Test User"
        repo.config["user.email"] = "test@example.com"
        if files is None:
            files = {"README.md": "# Test Repo\n"}
        if files:
            commit_files(repo_path, files, "Initial commit")
        return repo_path

    return _make


@pytest.fixture
def temp_repo(make_repo: RepoFactory) -> Path:
    """Create a temporary git repository with a small Python project."""
    return make_repo(
        "repo",
        {
            "README.md": "# Test Repo\n",
            "src/main.py": "import sys\n\n\ndef main():\n    return greet(sys.argv)\n",
            "src/util.py": "def greet(name):\n    return f'hello {name}'\n",
        },
    )


@pytest.fixture
def config(tmp_path: Path) -> CodeSearchConfig:
    """Config rooted in tmp_path with fast timeouts."""
    return CodeSearchConfig.model_validate(
        {
            "data_dir": str(tmp_path / "data"),
            "indexer": {"startup_timeout_sec": 5.0, "close_timeout_sec": 1.0},
            "queue": {"length": 20, "batch_length": 20},
        }
    )


@pytest.fixture
def commit() -> Callable[..., str]:
    """Commit files into an existing test repository."""
    return commit_files
