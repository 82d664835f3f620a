"""Configuration loading and merging for refwatch.

Handles TOML loading, config discovery, deep merging, and environment overlay.
"""

from __future__ import annotations

import os
import sys
import threading
import warnings
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

# TOML loading: tomllib (3.11+) with tomli fallback
if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib  # type: ignore

from pydantic import ValidationError

from .config_schema import RefwatchConfig


CONFIG_FILENAME = "config.toml"

# Directory names
USER_CONFIG_DIR = ".refwatch"
PROJECT_CONFIG_DIR = ".refwatch"

REQUIRED_OPTIONS = ("repository", "path")


class ConfigError(Exception):
    """Configuration loading or validation error."""

    pass


class ConfigurationInvalid(ConfigError):
    """A required watch option is missing or blank."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


def validate_options(options: Mapping[str, Any]) -> List[str]:
    """Return one error message per missing required option."""
    errors = []
    for key in REQUIRED_OPTIONS:
        value = options.get(key)
        if value is None or not str(value).strip():
            errors.append(f"{key} is required")
    return errors


def require_options(options: Mapping[str, Any]) -> None:
    """Raise ConfigurationInvalid unless every required option is present."""
    errors = validate_options(options)
    if errors:
        raise ConfigurationInvalid(errors)


def _get_user_config_dir() -> Path:
    """Get user-level config directory (~/.refwatch/)."""
    return Path.home() / USER_CONFIG_DIR


def _get_project_config_dir(project_path: Optional[Path] = None) -> Optional[Path]:
    """Get project-level config directory (.refwatch/).

    Searches upward from project_path to find .refwatch/ directory.
    """
    if project_path is None:
        project_path = Path.cwd()

    if not project_path.is_absolute():
        project_path = project_path.resolve()

    current = project_path
    while current != current.parent:
        config_dir = current / PROJECT_CONFIG_DIR
        if config_dir.is_dir() and config_dir != _get_user_config_dir():
            return config_dir
        current = current.parent

    return None


def _load_toml(path: Path) -> Dict[str, Any]:
    """Load a TOML file.

    Args:
        path: Path to TOML file

    Returns:
        Parsed TOML as dict

    Raises:
        ConfigError: If file cannot be loaded or parsed
    """
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {path}")
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries.

    Override values take precedence. Nested dicts are merged recursively.
    Lists are replaced, not merged.
    """
    result = base.copy()

    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


# Environment variable -> (section path, key)
ENV_MAPPING: Dict[str, tuple[list[str], str]] = {
    "REFWATCH_INTERVAL": (["schedule"], "interval"),
    "REFWATCH_LOCK_TIMEOUT": (["schedule"], "lock_timeout"),
    "REFWATCH_EVENTS_FILE": (["events"], "file"),
    "REFWATCH_LOG_LEVEL": (["logging"], "level"),
    "REFWATCH_LOG_DIR": (["logging"], "dir"),
    "REFWATCH_LOG_MAX_BYTES": (["logging"], "max_bytes"),
    "REFWATCH_LOG_BACKUP_COUNT": (["logging"], "backup_count"),
    "REFWATCH_LOG_DISABLE_FILE": (["logging"], "disable_file"),
    # Shorthand for a single default watch
    "REFWATCH_REPOSITORY": (["watches", "default"], "repository"),
    "REFWATCH_PATH": (["watches", "default"], "path"),
}


def _env_to_config_key(env_var: str) -> tuple[list[str], str]:
    """Map environment variable to config path.

    Examples:
        REFWATCH_LOG_LEVEL -> (["logging"], "level")
        REFWATCH_REPOSITORY -> (["watches", "default"], "repository")
    """
    return ENV_MAPPING.get(env_var, ([], env_var))


def _apply_env_overlay(config_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Apply environment variable overrides to config dict."""
    result = _deep_merge({}, config_dict)

    for env_var in ENV_MAPPING:
        value = os.getenv(env_var)
        if value is None:
            continue

        section_path, key_name = _env_to_config_key(env_var)
        current = result
        for section in section_path:
            if section not in current:
                current[section] = {}
            current = current[section]

        # Type conversion happens during Pydantic validation
        current[key_name] = value

    return result


def load_config(
    project_path: Optional[Path] = None,
    skip_env: bool = False,
) -> RefwatchConfig:
    """Load and merge refwatch configuration.

    Discovery order (later sources override earlier):
    1. Built-in defaults
    2. User config (~/.refwatch/config.toml)
    3. Project config (.refwatch/config.toml)
    4. Environment variables (unless skip_env=True)

    Raises:
        ConfigError: If config files are invalid
    """
    config_dict: Dict[str, Any] = {}

    user_config_path = _get_user_config_dir() / CONFIG_FILENAME
    if user_config_path.exists():
        try:
            config_dict = _deep_merge(config_dict, _load_toml(user_config_path))
        except ConfigError as e:
            # User config is optional, warn but continue
            warnings.warn(
                f"Skipping invalid user config at {user_config_path}: {e}",
                UserWarning,
            )

    project_config_dir = _get_project_config_dir(project_path)
    if project_config_dir:
        project_config_path = project_config_dir / CONFIG_FILENAME
        if project_config_path.exists():
            try:
                config_dict = _deep_merge(config_dict, _load_toml(project_config_path))
            except ConfigError as e:
                raise ConfigError(f"Invalid project config: {e}")

    if not skip_env:
        config_dict = _apply_env_overlay(config_dict)

    try:
        return RefwatchConfig.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigError(f"Config validation failed:\n{e}")


def get_config_paths(project_path: Optional[Path] = None) -> Dict[str, Optional[Path]]:
    """Get paths to the user and project config files."""
    project_dir = _get_project_config_dir(project_path)

    return {
        "user_config": _get_user_config_dir() / CONFIG_FILENAME,
        "project_config": project_dir / CONFIG_FILENAME if project_dir else None,
    }


def ensure_config_dir(user: bool = True, project_path: Optional[Path] = None) -> Path:
    """Ensure config directory exists and return it."""
    if user:
        config_dir = _get_user_config_dir()
    else:
        if project_path is None:
            project_path = Path.cwd()
        config_dir = project_path / PROJECT_CONFIG_DIR

    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


_cached_config: Optional[RefwatchConfig] = None
_cached_project_path: Optional[Path] = None
_config_lock = threading.Lock()


def get_config(project_path: Optional[Path] = None, force_reload: bool = False) -> RefwatchConfig:
    """Get cached config, loading if necessary (thread-safe)."""
    global _cached_config, _cached_project_path

    if project_path and str(project_path):
        normalized_path = project_path.resolve()
    else:
        normalized_path = None

    with _config_lock:
        if (
            force_reload
            or _cached_config is None
            or _cached_project_path != normalized_path
        ):
            _cached_config = load_config(project_path)
            _cached_project_path = normalized_path

        return _cached_config


def clear_config_cache() -> None:
    """Clear cached config (thread-safe)."""
    global _cached_config, _cached_project_path
    with _config_lock:
        _cached_config = None
        _cached_project_path = None
