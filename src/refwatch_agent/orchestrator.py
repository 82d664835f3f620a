"""End-to-end reconciliation run for one repository/mirror pair.

A run acquires the mirror, snapshots it, syncs it from the remote, snapshots
it again and emits the assembled report. Runs are synchronous and keep no
state between them beyond the mirror on disk. Callers must not start two runs
against the same mirror path at once.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from refwatch.models import RepositorySnapshot
from refwatch.report import assemble_report

from .backend import BackendError, GitBackend, MirrorHistory, RepoHandle
from .events import EventSink
from .observability import log_debug, timeit


class RunState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACQUIRING = "acquiring"
    SNAPSHOTTED_BEFORE = "snapshotted_before"
    SYNCING = "syncing"
    SNAPSHOTTED_AFTER = "snapshotted_after"
    RECONCILING = "reconciling"
    REPORTED = "reported"
    ERRORED = "errored"


class Orchestrator:
    """Drives one reconciliation run and hands the outcome to a sink."""

    def __init__(self, sink: EventSink, backend: Optional[GitBackend] = None):
        self.sink = sink
        self.backend = backend or GitBackend()
        self.state = RunState.UNINITIALIZED
        self.history: List[Tuple[RunState, Optional[str]]] = []
        self.last_error: Optional[str] = None

    def _transition(self, state: RunState, detail: Optional[str] = None) -> None:
        self.state = state
        self.history.append((state, detail))
        log_debug("run state", state=state.value, detail=detail)

    def _fail(self, message: str) -> None:
        self.last_error = message
        self._transition(RunState.ERRORED, message)
        self.sink.report_failure(message)

    def run(
        self,
        repository: str,
        path: Path | str,
        *,
        max_log_entries: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """Run acquire -> snapshot -> sync -> snapshot -> reconcile -> report.

        Args:
            repository: Remote repository URL
            path: Local bare mirror path
            max_log_entries: Optional cap on commits per log window

        Returns:
            The emitted payload, or None if the run errored (nothing emitted)
        """
        self.state = RunState.UNINITIALIZED
        self.history = []
        self.last_error = None

        with timeit("refwatch.run", repository=repository, path=str(path)) as info:
            self._transition(RunState.ACQUIRING)
            try:
                handle = self.backend.open_or_clone(repository, path)
            except BackendError as e:
                self._fail(f"Error opening bare repo {repository} in {path}: {e}")
                info["outcome_state"] = self.state.value
                return None

            with handle:
                payload = self._reconcile(handle, repository, max_log_entries)

            info["outcome_state"] = self.state.value
            if payload is not None:
                info["changed"] = payload["changed"]
            return payload

    def _reconcile(
        self,
        handle: RepoHandle,
        repository: str,
        max_log_entries: Optional[int],
    ) -> Optional[Dict[str, Any]]:
        try:
            before = RepositorySnapshot.capture(self.backend, handle)
            self._transition(RunState.SNAPSHOTTED_BEFORE)

            self._transition(RunState.SYNCING)
            self.backend.fetch_all(handle, repository)

            after = RepositorySnapshot.capture(self.backend, handle)
            self._transition(RunState.SNAPSHOTTED_AFTER)

            self._transition(RunState.RECONCILING)
            history = MirrorHistory(self.backend, handle, max_log_entries)
            payload = assemble_report(before, after, history)
        except BackendError as e:
            stage = "fetching" if self.state is RunState.SYNCING else "reading"
            self._fail(f"Error {stage} {repository} in {handle.path}: {e}")
            return None

        self.sink.emit(payload)
        self._transition(RunState.REPORTED)
        return payload
