"""Assemble the change report for two repository snapshots.

The payload shape is the external contract consumed by event readers::

    {
        "changed": bool,
        "diff_stats": {"total": {...}, "files": {...}},
        "current_tags": [...], "new_tags": [...], "removed_tags": [...],
        "current_branches": [...], "new_branches": [...], "removed_branches": [...],
        "log": [...],
    }
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Protocol, Sequence

from .models import (
    BranchUpdate,
    CommitRef,
    DiffStats,
    RepositorySnapshot,
    TagUpdate,
    commit_to_dict,
)
from .reconcile import merge_branches, merge_tags, reconcile_branches, reconcile_tags
from .window import commit_window


class HistoryProvider(Protocol):
    """Diff and ancestry queries against one repository."""

    def diff_stats(self, a: CommitRef, b: CommitRef) -> DiffStats:
        ...

    def ancestry_window(self, after: CommitRef, before: CommitRef) -> Sequence[CommitRef]:
        ...


def _diff_stats(
    history: HistoryProvider,
    previous: Optional[CommitRef],
    current: Optional[CommitRef],
) -> DiffStats:
    if previous is None or current is None or previous.sha == current.sha:
        return DiffStats.zero()
    return history.diff_stats(previous, current)


def _log(
    history: HistoryProvider,
    previous: Optional[CommitRef],
    current: Optional[CommitRef],
) -> List[Dict[str, Any]]:
    return [c.to_dict() for c in commit_window(previous, current, history.ancestry_window)]


def branch_entry(update: BranchUpdate, history: HistoryProvider) -> Dict[str, Any]:
    return {
        "changed": update.changed,
        "name": update.name,
        "prev_last_commit": commit_to_dict(update.previous),
        "new_last_commit": commit_to_dict(update.current),
        "log": _log(history, update.previous, update.current),
        "diff_stats": _diff_stats(history, update.previous, update.current).to_dict(),
    }


def tag_entry(update: TagUpdate) -> Dict[str, Any]:
    return update.to_dict()


def assemble_report(
    before: RepositorySnapshot,
    after: RepositorySnapshot,
    history: HistoryProvider,
) -> Dict[str, Any]:
    """Reconcile two snapshots and build the report payload.

    Args:
        before: Snapshot taken before syncing the mirror
        after: Snapshot taken after syncing the mirror
        history: Diff/ancestry provider for the mirror both snapshots came from

    Returns:
        The complete payload. Nothing is returned if any part fails.
    """
    branches = reconcile_branches(before.branches, after.branches)
    tags = reconcile_tags(before.tags, after.tags)

    prev_latest = before.latest_commit
    new_latest = after.latest_commit
    prev_sha = prev_latest.sha if prev_latest is not None else None
    new_sha = new_latest.sha if new_latest is not None else None

    return {
        "changed": prev_sha != new_sha or branches.changed or tags.changed,
        "diff_stats": _diff_stats(history, prev_latest, new_latest).to_dict(),
        "current_tags": [tag_entry(t) for t in tags.updated],
        "new_tags": [tag_entry(merge_tags(None, t)) for t in tags.added],
        "removed_tags": [tag_entry(merge_tags(t, None)) for t in tags.removed],
        "current_branches": [branch_entry(b, history) for b in branches.updated],
        "new_branches": [branch_entry(merge_branches(None, b), history) for b in branches.added],
        "removed_branches": [
            branch_entry(merge_branches(b, None), history) for b in branches.removed
        ],
        "log": _log(history, prev_latest, new_latest),
    }
