"""Match two named collections (branches or tags) and classify each name.

Matching is by ``name`` with first-match semantics: when a collection holds
duplicate names, the first entity found by a linear scan wins and later
duplicates are ignored for matching. Callers may rely on this.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Iterable, List, Optional, Protocol, TypeVar

from .models import BranchSnapshot, BranchUpdate, TagSnapshot, TagUpdate


class Named(Protocol):
    name: str


T = TypeVar("T", bound=Named)
M = TypeVar("M")


@dataclass(frozen=True)
class ReconciliationResult(Generic[T, M]):
    """Outcome of reconciling a before collection against an after collection.

    ``updated`` holds merged values for every name present in both
    collections, plus every added name (merged with no before side).
    """

    added: List[T] = field(default_factory=list)
    removed: List[T] = field(default_factory=list)
    updated: List[M] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        """True when names were added or removed.

        A ref whose target moved but whose name persisted does not count;
        inspect the ``updated`` entries for that.
        """
        return bool(self.added) or bool(self.removed)


def _first_by_name(entities: Iterable[T]) -> Dict[str, T]:
    index: Dict[str, T] = {}
    for entity in entities:
        index.setdefault(entity.name, entity)
    return index


def reconcile(
    before: Iterable[T],
    after: Iterable[T],
    merge: Callable[[Optional[T], T], M],
) -> ReconciliationResult[T, M]:
    """Classify names as added, removed or updated.

    Args:
        before: Entities from the earlier snapshot
        after: Entities from the later snapshot
        merge: Builds the merged value from (before entity or None, after entity)

    Returns:
        ReconciliationResult; ``updated`` lists added names first (in after
        order), then matched names (in before order). Inputs are not modified.
    """
    before = list(before)
    after = list(after)
    before_index = _first_by_name(before)
    after_index = _first_by_name(after)

    result: ReconciliationResult[T, M] = ReconciliationResult()
    for entity in after:
        if entity.name not in before_index:
            result.added.append(entity)
            result.updated.append(merge(None, entity))

    for entity in before:
        match = after_index.get(entity.name)
        if match is None:
            result.removed.append(entity)
        else:
            result.updated.append(merge(entity, match))

    return result


def merge_tags(before: Optional[TagSnapshot], after: Optional[TagSnapshot]) -> TagUpdate:
    """Merge two observations of a tag.

    ``moved_to`` is set only when the names match and the targets differ.
    ``sha`` always keeps the before target when there is one.
    """
    if before is None:
        if after is None:
            raise ValueError("merge_tags needs at least one tag")
        return TagUpdate(name=after.name, sha=after.sha)
    if after is not None and before.name == after.name and before.sha != after.sha:
        return TagUpdate(name=before.name, sha=before.sha, moved_to=after.sha)
    return TagUpdate(name=before.name, sha=before.sha)


def merge_branches(
    before: Optional[BranchSnapshot], after: Optional[BranchSnapshot]
) -> BranchUpdate:
    """Merge two observations of a branch into a BranchUpdate."""
    if before is None and after is None:
        raise ValueError("merge_branches needs at least one branch")
    name = before.name if before is not None else after.name  # type: ignore[union-attr]
    return BranchUpdate(
        name=name,
        previous=before.head if before is not None else None,
        current=after.head if after is not None else None,
    )


def reconcile_branches(
    before: Iterable[BranchSnapshot], after: Iterable[BranchSnapshot]
) -> ReconciliationResult[BranchSnapshot, BranchUpdate]:
    return reconcile(before, after, merge_branches)


def reconcile_tags(
    before: Iterable[TagSnapshot], after: Iterable[TagSnapshot]
) -> ReconciliationResult[TagSnapshot, TagUpdate]:
    return reconcile(before, after, merge_tags)
