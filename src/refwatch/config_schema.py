"""Configuration schema for refwatch.

Defines all configuration options with types, defaults, and validation.
Uses Pydantic for schema enforcement and clear error messages.
"""

from __future__ import annotations

import re
import warnings
from pathlib import Path
from typing import Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, ValidationInfo, field_validator


DEFAULT_INTERVAL_SECONDS = 12 * 60 * 60

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([smhd]?)\s*$")
_DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: Union[str, int, float]) -> float:
    """Convert ``"30m"``, ``"12h"``, ``"1d"`` or a number of seconds to seconds.

    Raises:
        ValueError: If the value is not a positive duration
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION_PATTERN.match(value.lower())
        if not match:
            raise ValueError(f"Invalid duration: {value!r} (use e.g. 90, '30m', '12h', '1d')")
        seconds = float(match.group(1)) * _DURATION_UNITS[match.group(2)]
    if seconds <= 0:
        raise ValueError(f"Duration must be positive: {value!r}")
    return seconds


class WatchConfig(BaseModel):
    """One tracked repository: the remote and where its bare mirror lives."""

    repository: str = Field(description="Remote repository URL")
    path: str = Field(description="Local bare mirror path (parent directory must exist)")
    max_log_entries: Optional[int] = Field(
        default=None,
        ge=1,
        description="Cap on commits reported per log window (unset = no cap)",
    )

    @field_validator("repository", "path")
    @classmethod
    def validate_required(cls, v: str, info: ValidationInfo) -> str:
        """Reject blank values."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} is required")
        return v.strip()

    @field_validator("path")
    @classmethod
    def validate_parent(cls, v: str) -> str:
        """Warn if the mirror's parent directory doesn't exist yet."""
        parent = Path(v).expanduser().parent
        if not parent.is_dir():
            warnings.warn(
                f"Parent directory of mirror path does not exist: {parent}",
                UserWarning,
            )
        return v


class ScheduleConfig(BaseModel):
    """Periodic trigger settings."""

    interval: float = Field(
        default=DEFAULT_INTERVAL_SECONDS,
        description="Seconds between checks; accepts '30m', '12h', '1d'",
    )
    lock_timeout: float = Field(
        default=0,
        ge=0,
        description="Seconds to wait for a busy mirror before skipping the run",
    )

    @field_validator("interval", mode="before")
    @classmethod
    def validate_interval(cls, v):
        return parse_duration(v)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level",
    )
    dir: str = Field(
        default="",
        description="Log directory (empty = ~/.refwatch/logs)",
    )
    max_bytes: int = Field(
        default=10485760,  # 10MB
        ge=0,
        description="Maximum log file size in bytes",
    )
    backup_count: int = Field(
        default=5,
        ge=0,
        description="Number of backup log files to keep",
    )
    disable_file: bool = Field(
        default=False,
        description="Disable file logging (stderr only)",
    )

    @field_validator("dir")
    @classmethod
    def validate_log_dir(cls, v: str) -> str:
        """Warn if log directory path is not a directory (will be created on use)."""
        if v:
            path = Path(v).expanduser()
            if path.exists() and not path.is_dir():
                warnings.warn(
                    f"Log path exists but is not a directory: {v}",
                    UserWarning,
                )
        return v


class EventsConfig(BaseModel):
    """Where emitted reports and failures are recorded."""

    file: str = Field(
        default="",
        description="JSONL event log (empty = ~/.refwatch/events.jsonl)",
    )


class RefwatchConfig(BaseModel):
    """Root configuration model."""

    version: int = Field(
        default=1,
        ge=1,
        description="Config schema version",
    )

    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)

    # Tracked repositories keyed by a short name
    watches: Dict[str, WatchConfig] = Field(
        default_factory=dict,
        description="Repositories to track",
    )

    @classmethod
    def default(cls) -> "RefwatchConfig":
        """Create config with all defaults."""
        return cls()

    def get_watch(self, name: str) -> Optional[WatchConfig]:
        """Get a watch by name.

        Args:
            name: Watch name as written in the config file

        Returns:
            WatchConfig if found, None otherwise
        """
        return self.watches.get(name)
