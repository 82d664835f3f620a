"""Tests for commit window selection."""

from __future__ import annotations

import pytest

from conftest import make_commit
from refwatch.window import commit_window


C1 = make_commit("c1", 100)
C2 = make_commit("c2", 200)
C3 = make_commit("c3", 300)


def _unreachable(after, before):
    pytest.fail("ancestry should not be consulted")


def test_no_later_commit_reports_earlier():
    assert commit_window(C1, None, _unreachable) == [C1]


def test_no_commits_at_all():
    assert commit_window(None, None, _unreachable) == []


def test_no_earlier_commit_reports_later():
    assert commit_window(None, C2, _unreachable) == [C2]


def test_stationary_commit():
    assert commit_window(C1, make_commit("c1", 100), _unreachable) == [C1]


def test_delegates_traversal():
    calls = []

    def ancestry(after, before):
        calls.append((after.sha, before.sha))
        return (C3, C2)

    assert commit_window(C1, C3, ancestry) == [C3, C2]
    assert calls == [("c3", "c1")]


def test_diverged_history_is_whatever_ancestry_returns():
    # A force-push that rewrote history leaves nothing reachable-only
    # from the new head when it is an ancestor of the old one.
    assert commit_window(C3, C1, lambda after, before: []) == []
