"""Data model for repository observations.

Everything here is immutable. Snapshots are captured fresh for each
observation and merged values are new objects, never annotated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

if TYPE_CHECKING:  # pragma: no cover
    from refwatch_agent.backend import GitBackend, RepoHandle


COMMIT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S %z"


@dataclass(frozen=True)
class Author:
    name: str
    email: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "email": self.email}


@dataclass(frozen=True)
class CommitRef:
    """One commit: identity plus the metadata reported for it."""

    sha: str
    message: str
    author: Author
    timestamp: datetime

    @property
    def date(self) -> str:
        return self.timestamp.strftime(COMMIT_DATE_FORMAT)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sha": self.sha,
            "message": self.message,
            "author": self.author.to_dict(),
            "date": self.date,
        }


def commit_to_dict(commit: Optional[CommitRef]) -> Optional[Dict[str, Any]]:
    if commit is None:
        return None
    return commit.to_dict()


@dataclass(frozen=True)
class BranchSnapshot:
    name: str
    head: CommitRef


@dataclass(frozen=True)
class TagSnapshot:
    name: str
    target: CommitRef

    @property
    def sha(self) -> str:
        return self.target.sha


@dataclass(frozen=True)
class BranchUpdate:
    """A branch seen across two snapshots.

    ``previous`` is the head in the earlier snapshot and ``current`` the head
    in the later one. A branch that only exists later has no ``previous``;
    one that only existed earlier has no ``current``.
    """

    name: str
    previous: Optional[CommitRef]
    current: Optional[CommitRef]

    def __post_init__(self) -> None:
        if self.previous is None and self.current is None:
            raise ValueError(f"branch {self.name!r} needs at least one head")

    @property
    def changed(self) -> bool:
        if self.previous is None or self.current is None:
            return True
        return self.previous.sha != self.current.sha


@dataclass(frozen=True)
class TagUpdate:
    """A tag seen across two snapshots.

    ``sha`` keeps the original target; a move is reported via ``moved_to``.
    """

    name: str
    sha: str
    moved_to: Optional[str] = None

    @property
    def moved(self) -> bool:
        return self.moved_to is not None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"sha": self.sha, "name": self.name, "moved_to": self.moved_to}


@dataclass(frozen=True)
class FileStats:
    insertions: int = 0
    deletions: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"insertions": self.insertions, "deletions": self.deletions}


@dataclass(frozen=True)
class DiffStats:
    """Line and file counts for the diff between two commits."""

    insertions: int = 0
    deletions: int = 0
    files: Dict[str, FileStats] = field(default_factory=dict)

    @classmethod
    def zero(cls) -> "DiffStats":
        return cls()

    @classmethod
    def from_files(cls, files: Dict[str, FileStats]) -> "DiffStats":
        return cls(
            insertions=sum(f.insertions for f in files.values()),
            deletions=sum(f.deletions for f in files.values()),
            files=dict(files),
        )

    @property
    def lines(self) -> int:
        return self.insertions + self.deletions

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": {
                "insertions": self.insertions,
                "deletions": self.deletions,
                "lines": self.lines,
                "files": len(self.files),
            },
            "files": {path: stats.to_dict() for path, stats in self.files.items()},
        }


def _latest_head(branches: Tuple[BranchSnapshot, ...]) -> Optional[CommitRef]:
    # First-encountered wins ties, so the result depends on backend order
    # when several heads share a timestamp.
    latest: Optional[CommitRef] = None
    for branch in branches:
        if latest is None or branch.head.timestamp > latest.timestamp:
            latest = branch.head
    return latest


@dataclass(frozen=True)
class RepositorySnapshot:
    """Branches and tags of a repository at one instant."""

    branches: Tuple[BranchSnapshot, ...] = ()
    tags: Tuple[TagSnapshot, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "branches", tuple(self.branches))
        object.__setattr__(self, "tags", tuple(self.tags))

    @property
    def latest_commit(self) -> Optional[CommitRef]:
        """The most recent branch head, or None when there are no branches."""
        return _latest_head(self.branches)

    @classmethod
    def capture(cls, backend: "GitBackend", handle: "RepoHandle") -> "RepositorySnapshot":
        """Read the current branch and tag refs through ``backend``.

        Does not modify the repository and may be called repeatedly.
        """
        branches = tuple(
            BranchSnapshot(name=name, head=head)
            for name, head in backend.list_branches(handle)
        )
        tags = tuple(
            TagSnapshot(name=name, target=target)
            for name, target in backend.list_tags(handle)
        )
        return cls(branches=branches, tags=tags)
