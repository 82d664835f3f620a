"""Bare-mirror git operations backed by GitPython.

The mirror is cloned with ``--bare`` (refs and objects only, no working tree)
and refreshed with a forced, pruning fetch of every branch and tag so that
its refs always match the remote after a sync.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from git import Repo, GitCommandError, InvalidGitRepositoryError, NoSuchPathError
from git.objects import Commit

from refwatch.models import Author, CommitRef, DiffStats, FileStats

from .observability import log_debug, log_warning, timeit


FETCH_REFSPECS = ("+refs/heads/*:refs/heads/*", "+refs/tags/*:refs/tags/*")


class BackendError(Exception):
    """Base exception for version-control backend failures."""
    pass


class RemoteUnreachable(BackendError):
    """The remote could not be cloned."""
    pass


class InvalidLocalPath(BackendError):
    """The mirror path cannot hold or does not contain a repository."""
    pass


class FetchError(BackendError):
    """Fetching refs from the remote failed."""
    pass


class HistoryError(BackendError):
    """Diff or log query against the mirror failed."""
    pass


def _git_env() -> Dict[str, str]:
    # Fail fast instead of prompting for credentials.
    env = os.environ.copy()
    env.setdefault("GIT_TERMINAL_PROMPT", "0")
    env.setdefault("GCM_INTERACTIVE", "never")
    env.setdefault("GIT_ASKPASS", "echo")
    env.setdefault("GIT_SSH_COMMAND", "ssh -o BatchMode=yes")
    return env


@dataclass
class RepoHandle:
    """An open bare mirror. The path is its identity."""

    path: Path
    repo: Repo

    def close(self) -> None:
        self.repo.close()

    def __enter__(self) -> "RepoHandle":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def _is_empty_dir(path: Path) -> bool:
    return path.is_dir() and not any(path.iterdir())


def to_commit_ref(commit: Commit) -> CommitRef:
    message = commit.message
    if isinstance(message, bytes):
        message = message.decode("utf-8", errors="replace")
    return CommitRef(
        sha=commit.hexsha,
        message=message.rstrip("\n"),
        author=Author(name=commit.author.name or "", email=commit.author.email or ""),
        timestamp=commit.committed_datetime,
    )


def parse_numstat(output: str) -> DiffStats:
    """Parse ``git diff --numstat -z`` output. Binary files count as 0/0.

    Paths come through literally; a rename record (empty path field) is
    followed by the source and destination paths and is keyed by the latter.
    """
    files: Dict[str, FileStats] = {}
    fields = iter(output.split("\0"))
    for record in fields:
        if not record:
            continue
        parts = record.split("\t", 2)
        if len(parts) != 3:
            continue
        added, deleted, path = parts
        if not path:
            next(fields, "")
            path = next(fields, "")
            if not path:
                continue
        files[path] = FileStats(
            insertions=int(added) if added.isdigit() else 0,
            deletions=int(deleted) if deleted.isdigit() else 0,
        )
    return DiffStats.from_files(files)


class GitBackend:
    """Clone, fetch and query bare mirrors."""

    def __init__(self, env: Optional[Dict[str, str]] = None):
        self._env = env if env is not None else _git_env()

    def open_or_clone(self, remote_url: str, local_path: Path | str) -> RepoHandle:
        """Open the mirror at ``local_path``, cloning it first if absent or empty.

        Raises:
            InvalidLocalPath: Parent directory missing, or path holds something
                other than a git repository
            RemoteUnreachable: Clone failed
        """
        path = Path(local_path).expanduser()
        if not path.parent.is_dir():
            raise InvalidLocalPath(f"Parent directory does not exist: {path.parent}")

        if not path.exists() or _is_empty_dir(path):
            with timeit("git.clone", repository=remote_url, path=str(path)):
                try:
                    repo = Repo.clone_from(remote_url, path, bare=True, env=self._env)
                except GitCommandError as e:
                    raise RemoteUnreachable(f"Failed to clone {remote_url}: {e}") from e
            return RepoHandle(path=path, repo=repo)

        if not path.is_dir():
            raise InvalidLocalPath(f"Mirror path is not a directory: {path}")
        try:
            repo = Repo(path)
        except (InvalidGitRepositoryError, NoSuchPathError) as e:
            raise InvalidLocalPath(f"Not a git repository: {path}") from e
        log_debug("Opened existing mirror", path=str(path), bare=repo.bare)
        return RepoHandle(path=path, repo=repo)

    def fetch_all(self, handle: RepoHandle, remote_url: str) -> None:
        """Force-fetch every branch and tag, pruning refs gone from the remote.

        Raises:
            FetchError: If git fetch fails
        """
        with timeit("git.fetch", repository=remote_url, path=str(handle.path)):
            try:
                with handle.repo.git.custom_environment(**self._env):
                    handle.repo.git.fetch("--force", "--prune", remote_url, *FETCH_REFSPECS)
            except GitCommandError as e:
                raise FetchError(f"Failed to fetch {remote_url} into {handle.path}: {e}") from e

    def list_branches(self, handle: RepoHandle) -> Iterator[Tuple[str, CommitRef]]:
        for head in handle.repo.heads:
            yield head.name, to_commit_ref(head.commit)

    def list_tags(self, handle: RepoHandle) -> Iterator[Tuple[str, CommitRef]]:
        for tag in handle.repo.tags:
            try:
                commit = tag.commit
            except ValueError:
                # Tags on trees or blobs have no commit to report
                log_warning("Skipping tag that does not point at a commit", tag=tag.name)
                continue
            yield tag.name, to_commit_ref(commit)

    def diff_stats(self, handle: RepoHandle, a: CommitRef, b: CommitRef) -> DiffStats:
        try:
            output = handle.repo.git.diff("--numstat", "-z", "--no-renames", a.sha, b.sha)
        except GitCommandError as e:
            raise HistoryError(f"Failed to diff {a.sha}..{b.sha}: {e}") from e
        return parse_numstat(output)

    def ancestry_window(
        self,
        handle: RepoHandle,
        after: CommitRef,
        before: CommitRef,
        max_count: Optional[int] = None,
    ) -> List[CommitRef]:
        """Commits reachable from ``after`` but not from ``before``, newest first."""
        kwargs = {"max_count": max_count} if max_count else {}
        try:
            return [
                to_commit_ref(c)
                for c in handle.repo.iter_commits(f"{before.sha}..{after.sha}", **kwargs)
            ]
        except GitCommandError as e:
            raise HistoryError(f"Failed to list {before.sha}..{after.sha}: {e}") from e


class MirrorHistory:
    """Diff/ancestry queries bound to one open mirror."""

    def __init__(self, backend: GitBackend, handle: RepoHandle, max_count: Optional[int] = None):
        self.backend = backend
        self.handle = handle
        self.max_count = max_count

    def diff_stats(self, a: CommitRef, b: CommitRef) -> DiffStats:
        return self.backend.diff_stats(self.handle, a, b)

    def ancestry_window(self, after: CommitRef, before: CommitRef) -> List[CommitRef]:
        return self.backend.ancestry_window(self.handle, after, before, self.max_count)
