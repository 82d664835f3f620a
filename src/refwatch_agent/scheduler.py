"""Periodic trigger for a set of agents.

Runs against the same mirror path are serialized here with a MirrorLock;
the reconciliation core itself does no locking.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from refwatch.config_schema import DEFAULT_INTERVAL_SECONDS
from refwatch.lock import MirrorLock

from .agent import GitAgent
from .observability import log_action, log_warning


@dataclass
class _Slot:
    agent: GitAgent
    next_run: float = 0.0
    runs: int = 0
    skipped: int = 0


class Scheduler:
    """Runs each agent's ``check()`` every ``interval`` seconds."""

    def __init__(
        self,
        agents: Iterable[GitAgent],
        interval: float = DEFAULT_INTERVAL_SECONDS,
        *,
        lock_timeout: float = 0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.lock_timeout = lock_timeout
        self._clock = clock
        self._slots: Dict[str, _Slot] = {a.name: _Slot(agent=a) for a in agents}

    @property
    def agents(self) -> List[GitAgent]:
        return [slot.agent for slot in self._slots.values()]

    def stats(self) -> Dict[str, Dict[str, object]]:
        return {
            name: {
                "runs": slot.runs,
                "skipped": slot.skipped,
                "working": slot.agent.working,
            }
            for name, slot in self._slots.items()
        }

    def _run_slot(self, slot: _Slot) -> bool:
        mirror = slot.agent.options.get("path")
        mirror_path = Path(str(mirror).strip()).expanduser() if mirror else None
        if mirror_path is None or not mirror_path.parent.is_dir():
            # Let the agent report the bad option
            slot.agent.check()
            return True
        lock = MirrorLock(mirror_path, timeout=self.lock_timeout)
        if not lock.acquire():
            log_warning("Mirror busy, skipping run", agent=slot.agent.name, path=str(mirror))
            return False
        try:
            slot.agent.check()
        finally:
            lock.release()
        return True

    def run_pending(self, now: Optional[float] = None) -> List[str]:
        """Run every agent that is due; return the names that ran."""
        now = self._clock() if now is None else now
        ran = []
        for name, slot in self._slots.items():
            if slot.next_run > now:
                continue
            if self._run_slot(slot):
                slot.runs += 1
                ran.append(name)
                log_action("scheduler.run", agent=name, working=slot.agent.working)
            else:
                slot.skipped += 1
            slot.next_run = now + self.interval
        return ran

    def seconds_until_next(self, now: Optional[float] = None) -> float:
        now = self._clock() if now is None else now
        if not self._slots:
            return self.interval
        return max(0.0, min(slot.next_run for slot in self._slots.values()) - now)

    def run_forever(self, stop: threading.Event) -> None:
        """Loop until ``stop`` is set, sleeping between due runs."""
        while not stop.is_set():
            self.run_pending()
            stop.wait(self.seconds_until_next())
