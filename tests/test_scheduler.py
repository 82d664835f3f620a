from pathlib import Path

import pytest

from refwatch.lock import MirrorLock
from refwatch_agent.agent import GitAgent
from refwatch_agent.events import MemorySink
from refwatch_agent.scheduler import Scheduler


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class CountingAgent(GitAgent):
    def __init__(self, name, path):
        super().__init__(name, {"repository": "unused", "path": str(path)}, MemorySink())
        self.checks = 0

    def check(self):
        self.checks += 1
        # The scheduler holds the mirror lock while checking
        assert MirrorLock(Path(self.options["path"]), timeout=0).acquire() is False
        return None


@pytest.fixture
def clock():
    return FakeClock()


def test_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        Scheduler([], interval=0)


def test_runs_due_agents_once_per_interval(tmp_path, clock):
    a = CountingAgent("a", tmp_path / "a.git")
    b = CountingAgent("b", tmp_path / "b.git")
    sched = Scheduler([a, b], interval=60, clock=clock)

    assert sched.run_pending() == ["a", "b"]
    assert sched.run_pending() == []
    assert sched.seconds_until_next() == 60

    clock.now += 59
    assert sched.run_pending() == []
    clock.now += 1
    assert sched.run_pending() == ["a", "b"]
    assert (a.checks, b.checks) == (2, 2)
    assert sched.stats()["a"]["runs"] == 2


def test_busy_mirror_is_skipped(tmp_path, clock):
    agent = CountingAgent("a", tmp_path / "a.git")
    sched = Scheduler([agent], interval=60, clock=clock)

    held = MirrorLock(tmp_path / "a.git", timeout=0)
    assert held.acquire()
    try:
        assert sched.run_pending() == []
    finally:
        held.release()

    assert agent.checks == 0
    assert sched.stats()["a"]["skipped"] == 1
    clock.now += 60
    assert sched.run_pending() == ["a"]


def test_lock_released_after_run(tmp_path, clock):
    agent = CountingAgent("a", tmp_path / "a.git")
    Scheduler([agent], interval=60, clock=clock).run_pending()
    assert not (tmp_path / "a.git.lock").exists()


def test_agent_with_bad_path_still_reports(tmp_path, clock):
    sink = MemorySink()
    agent = GitAgent("bad", {"repository": "x", "path": str(tmp_path / "no" / "m.git")}, sink)
    sched = Scheduler([agent], interval=60, clock=clock)

    assert sched.run_pending() == ["bad"]
    assert len(sink.failures) == 1
    assert sched.stats()["bad"]["working"] is False


def test_end_to_end_with_real_agent(upstream, mirror_path, mirrors_dir, clock):
    sink = MemorySink()
    agent = GitAgent("proj", {"repository": upstream.url, "path": str(mirror_path)}, sink)
    sched = Scheduler([agent], interval=60, clock=clock)

    sched.run_pending()
    upstream.commit("later")
    upstream.push()
    clock.now += 60
    sched.run_pending()

    assert [e["changed"] for e in sink.events] == [False, True]
    assert sched.stats()["proj"] == {"runs": 2, "skipped": 0, "working": True}
