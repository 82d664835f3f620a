"""Agent surface: validated options plus periodic and reactive triggers."""

from __future__ import annotations

import string
from typing import Any, Dict, Iterable, List, Mapping, Optional

from refwatch.config_loader import ConfigurationInvalid, require_options, validate_options
from refwatch.config_schema import WatchConfig

from .backend import GitBackend
from .events import EventSink
from .observability import log_debug, log_warning
from .orchestrator import Orchestrator, RunState

OVERRIDE_KEYS = ("repository", "path")


class _KeepMissing(dict):
    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def interpolate(value: Any, message: Mapping[str, Any]) -> Any:
    """Fill ``{field}`` placeholders in ``value`` from ``message``.

    Unknown placeholders are left as written; non-strings pass through.
    """
    if not isinstance(value, str):
        return value
    fields = _KeepMissing({k: v for k, v in message.items() if isinstance(k, str)})
    try:
        return string.Formatter().vformat(value, (), fields)
    except (ValueError, IndexError, AttributeError, KeyError):
        log_warning("Could not interpolate option", value=value)
        return value


class GitAgent:
    """Watches one repository.

    ``check()`` runs with the configured options; ``receive()`` runs once per
    upstream message, letting the message override ``repository``/``path``.
    """

    def __init__(
        self,
        name: str,
        options: Mapping[str, Any],
        sink: EventSink,
        backend: Optional[GitBackend] = None,
    ):
        self.name = name
        self.options: Dict[str, Any] = dict(options)
        self.orchestrator = Orchestrator(sink, backend)
        self.last_outcome: Optional[RunState] = None

    @classmethod
    def from_watch(
        cls,
        name: str,
        watch: WatchConfig,
        sink: EventSink,
        backend: Optional[GitBackend] = None,
    ) -> "GitAgent":
        return cls(name, watch.model_dump(), sink, backend)

    @property
    def sink(self) -> EventSink:
        return self.orchestrator.sink

    @property
    def working(self) -> bool:
        """True when the most recent check finished without error."""
        return self.last_outcome is RunState.REPORTED

    def validate_options(self) -> List[str]:
        return validate_options(self.options)

    def check(self) -> Optional[Dict[str, Any]]:
        return self.handle(self.options)

    def receive(self, messages: Iterable[Mapping[str, Any]]) -> List[Optional[Dict[str, Any]]]:
        results = []
        for message in messages:
            results.append(self.handle(self._options_for(message)))
        return results

    def _options_for(self, message: Mapping[str, Any]) -> Dict[str, Any]:
        opts = {key: interpolate(value, message) for key, value in self.options.items()}
        for key in OVERRIDE_KEYS:
            if message.get(key):
                opts[key] = message[key]
        return opts

    def handle(self, opts: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        """Run once with ``opts``; report invalid options as a failure."""
        log_debug("agent handle", agent=self.name, opts=dict(opts))
        try:
            require_options(opts)
        except ConfigurationInvalid as error:
            self.sink.report_failure(f"Invalid options for {self.name}: {error}")
            self.last_outcome = RunState.ERRORED
            return None

        payload = self.orchestrator.run(
            str(opts["repository"]).strip(),
            str(opts["path"]).strip(),
            max_log_entries=opts.get("max_log_entries"),
        )
        self.last_outcome = self.orchestrator.state
        return payload
