"""Read indexable file content from a repository's HEAD tree."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

import pygit2
import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class RepoFile:
    """One text file at HEAD."""

    path: str
    content: str


class RepoContentSource:
    """Owns a pygit2.Repository and yields the text files committed at HEAD.

    Binary blobs, files over ``max_file_size`` bytes and excluded extensions
    are skipped.
    """

    def __init__(
        self,
        repo_path: Path | str,
        max_file_size: int,
        excluded_extensions: list[str] | None = None,
    ) -> None:
        self._repo = pygit2.Repository(str(repo_path))
        self._max_file_size = max_file_size
        self._excluded = tuple(excluded_extensions or ())

    def head_sha(self) -> str | None:
        """Commit id at HEAD, or None for an unborn/empty repository."""
        if self._repo.is_empty or self._repo.head_is_unborn:
            return None
        return str(self._repo.head.peel(pygit2.Commit).id)

    def iter_files(self) -> Iterator[RepoFile]:
        if self.head_sha() is None:
            return
        tree = self._repo.head.peel(pygit2.Tree)
        yield from self._walk(tree, "")

    def _walk(self, tree: pygit2.Tree, prefix: str) -> Iterator[RepoFile]:
        for obj in tree:
            path = f"{prefix}{obj.name}"
            if isinstance(obj, pygit2.Tree):
                yield from self._walk(obj, f"{path}/")
                continue
            if not isinstance(obj, pygit2.Blob):
                # Submodule commits
                continue
            if path.endswith(self._excluded):
                continue
            if obj.size > self._max_file_size:
                logger.debug("file_skipped_too_large", path=path, size=obj.size)
                continue
            if obj.is_binary:
                continue
            yield RepoFile(path=path, content=obj.data.decode("utf-8", errors="replace"))
