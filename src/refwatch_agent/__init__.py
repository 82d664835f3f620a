"""refwatch agent runtime: git backend, reconciliation runs, scheduling and sinks."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("refwatch")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"  # Fallback for editable installs without metadata

from .agent import GitAgent
from .backend import (
    BackendError,
    HistoryError,
    FetchError,
    GitBackend,
    InvalidLocalPath,
    RemoteUnreachable,
)
from .events import EventSink, JsonlEventLog, MemorySink
from .orchestrator import Orchestrator, RunState
from .scheduler import Scheduler

__all__ = [
    "GitAgent",
    "BackendError",
    "HistoryError",
    "FetchError",
    "GitBackend",
    "InvalidLocalPath",
    "RemoteUnreachable",
    "EventSink",
    "JsonlEventLog",
    "MemorySink",
    "Orchestrator",
    "RunState",
    "Scheduler",
]
