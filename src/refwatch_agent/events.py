"""Sinks for emitted reports and reported failures."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Mapping, Protocol, runtime_checkable

from ulid import ULID

from refwatch.fs import append_jsonl, read_jsonl, utcnow_iso

from .observability import log_action, log_error


@runtime_checkable
class EventSink(Protocol):
    """Receives the outcome of each run: one report or one failure."""

    def emit(self, payload: Mapping[str, Any]) -> None:
        ...

    def report_failure(self, message: str) -> None:
        ...


def _new_id() -> str:
    return str(ULID()).lower()


class JsonlEventLog:
    """Append-only JSONL record of events and failures.

    Each line is ``{id, ts, kind, source, payload}`` for events and
    ``{id, ts, kind, source, message}`` for failures.
    """

    def __init__(self, path: Path, source: str = "refwatch"):
        self.path = Path(path)
        self.source = source

    def emit(self, payload: Mapping[str, Any]) -> None:
        record_id = _new_id()
        append_jsonl(
            self.path,
            {
                "id": record_id,
                "ts": utcnow_iso(),
                "kind": "event",
                "source": self.source,
                "payload": dict(payload),
            },
        )
        log_action("event.emit", source=self.source, event_id=record_id, changed=payload.get("changed"))

    def report_failure(self, message: str) -> None:
        append_jsonl(
            self.path,
            {
                "id": _new_id(),
                "ts": utcnow_iso(),
                "kind": "error",
                "source": self.source,
                "message": message,
            },
        )
        log_error(message, source=self.source)

    def records(self) -> List[Dict[str, Any]]:
        return read_jsonl(self.path)


class MemorySink:
    """Keeps events and failures in memory."""

    def __init__(self) -> None:
        self.events: List[Dict[str, Any]] = []
        self.failures: List[str] = []

    def emit(self, payload: Mapping[str, Any]) -> None:
        self.events.append(dict(payload))

    def report_failure(self, message: str) -> None:
        self.failures.append(message)
