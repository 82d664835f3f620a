"""Tests for name-keyed reconciliation of branches and tags."""

from __future__ import annotations

import itertools
from dataclasses import dataclass

import pytest

from conftest import make_commit
from refwatch.models import BranchSnapshot, TagSnapshot, TagUpdate
from refwatch.reconcile import (
    merge_branches,
    merge_tags,
    reconcile,
    reconcile_branches,
    reconcile_tags,
)


@dataclass(frozen=True)
class Item:
    name: str
    value: int = 0


def _pair(before, after):
    return (before.value if before else None, after.value)


NAME_SETS = [set(), {"a"}, {"a", "b"}, {"b", "c"}, {"a", "b", "c", "d"}]


@pytest.mark.parametrize("before_names,after_names", list(itertools.product(NAME_SETS, repeat=2)))
def test_partition_properties(before_names, after_names):
    before = [Item(n) for n in sorted(before_names)]
    after = [Item(n) for n in sorted(after_names)]
    result = reconcile(before, after, lambda b, a: (b.name if b else a.name))

    added = {i.name for i in result.added}
    removed = {i.name for i in result.removed}
    updated = set(result.updated)

    assert added == after_names - before_names
    assert removed == before_names - after_names
    assert not added & removed
    assert updated == (before_names & after_names) | added
    assert added | removed | updated == before_names | after_names
    assert result.changed == bool(added or removed)


def test_updated_order_added_first_then_before_order():
    before = [Item("b"), Item("a")]
    after = [Item("a"), Item("c"), Item("b"), Item("d")]
    result = reconcile(before, after, lambda b, a: a.name)
    assert result.updated == ["c", "d", "b", "a"]


def test_duplicate_names_match_first_occurrence():
    before = [Item("x", 1)]
    after = [Item("x", 10), Item("x", 20)]
    result = reconcile(before, after, _pair)
    assert result.updated == [(1, 10)]
    assert result.added == []


def test_duplicate_names_in_before_all_match():
    before = [Item("x", 1), Item("x", 2)]
    after = [Item("x", 10)]
    result = reconcile(before, after, _pair)
    assert result.updated == [(1, 10), (2, 10)]


def test_inputs_are_not_modified():
    before = (BranchSnapshot("main", make_commit("c1", 1)),)
    after = (BranchSnapshot("main", make_commit("c2", 2)),)
    reconcile_branches(before, after)
    assert before[0].head.sha == "c1"
    assert after[0].head.sha == "c2"


class TestTags:
    def test_moved_tag_is_updated_not_added_or_removed(self):
        before = [TagSnapshot("v1", make_commit("c1", 1))]
        after = [TagSnapshot("v1", make_commit("c2", 2))]
        result = reconcile_tags(before, after)
        assert result.added == [] and result.removed == []
        assert result.updated == [TagUpdate(name="v1", sha="c1", moved_to="c2")]
        assert result.updated[0].to_dict() == {"sha": "c1", "name": "v1", "moved_to": "c2"}
        assert result.changed is False

    def test_stationary_tag_has_no_move(self):
        c1 = make_commit("c1", 1)
        assert merge_tags(TagSnapshot("v1", c1), TagSnapshot("v1", c1)).moved_to is None

    def test_different_names_never_move(self):
        merged = merge_tags(TagSnapshot("v1", make_commit("c1", 1)), TagSnapshot("v2", make_commit("c2", 2)))
        assert merged == TagUpdate(name="v1", sha="c1")

    def test_added_tag_reports_its_own_target(self):
        assert merge_tags(None, TagSnapshot("v2", make_commit("c5", 5))) == TagUpdate("v2", "c5")

    def test_removed_tag(self):
        assert merge_tags(TagSnapshot("v0", make_commit("c0", 0)), None) == TagUpdate("v0", "c0")

    def test_merge_needs_a_tag(self):
        with pytest.raises(ValueError):
            merge_tags(None, None)


class TestBranches:
    def test_advanced_branch(self):
        c1, c2 = make_commit("c1", 100), make_commit("c2", 200)
        result = reconcile_branches([BranchSnapshot("main", c1)], [BranchSnapshot("main", c2)])
        (update,) = result.updated
        assert update.previous == c1
        assert update.current == c2
        assert update.changed is True

    def test_new_branch_has_no_previous(self):
        c1 = make_commit("c1", 100)
        result = reconcile_branches([], [BranchSnapshot("feature", c1)])
        assert [b.name for b in result.added] == ["feature"]
        (update,) = result.updated
        assert update.previous is None
        assert update.current == c1
        assert result.changed is True

    def test_removed_branch_merge(self):
        c1 = make_commit("c1", 100)
        update = merge_branches(BranchSnapshot("old", c1), None)
        assert update.previous == c1
        assert update.current is None
