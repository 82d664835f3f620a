"""Commit windows: the history one ref gained between two observations."""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from .models import CommitRef

# (after, before) -> commits reachable from after but not from before,
# most recent first.
Ancestry = Callable[[CommitRef, CommitRef], Sequence[CommitRef]]


def commit_window(
    before: Optional[CommitRef],
    after: Optional[CommitRef],
    ancestry: Ancestry,
) -> List[CommitRef]:
    """Return the commits introduced between ``before`` and ``after``.

    When nothing moved the stationary commit is reported on its own, and
    when there is no earlier commit the later one is reported on its own.
    Traversal itself is delegated to ``ancestry``.
    """
    if after is None:
        return [before] if before is not None else []
    if before is None:
        return [after]
    if before.sha == after.sha:
        return [before]
    return list(ancestry(after, before))
