"""Configuration file lookup, loading and caching.

Layers, lowest priority first:
- system: /etc/swarmmemory/config.yaml (%PROGRAMDATA%\\swarmmemory on Windows)
- user: $XDG_CONFIG_HOME or ~/.config, then swarmmemory/config.yaml (%APPDATA% on Windows)
- project: <session_root>/.swarm/config.yaml
- SWARM_* environment variables
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Any

import yaml

from swarmmemory.config.merge import merge_configs
from swarmmemory.config.schema import Config, LoggingConfig, MemoryConfig

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("swarmmemory.config")

CONFIG_FILENAME = "config.yaml"
APP_NAME = "swarmmemory"
PROJECT_DIR = ".swarm"

_cached_config: Config | None = None


def config_paths(session_root: str | Path | None = None) -> list[Path]:
    """Candidate config files in cascade order; any of them may be missing."""
    if sys.platform == "win32":
        bases = [os.environ.get("PROGRAMDATA"), os.environ.get("APPDATA")]
        dirs = [Path(base) / APP_NAME for base in bases if base]
    else:
        xdg = os.environ.get("XDG_CONFIG_HOME")
        user_base = Path(xdg) if xdg else Path.home() / ".config"
        dirs = [Path("/etc") / APP_NAME, user_base / APP_NAME]
    if session_root:
        dirs.append(Path(session_root) / PROJECT_DIR)
    return [d / CONFIG_FILENAME for d in dirs]


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed YAML as dict, or empty dict on error.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except PermissionError:
        _log.debug("Permission denied reading %s", path)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    Environment variables take highest priority.
    """
    overrides: dict[str, Any] = {}

    log_path = os.environ.get("SWARM_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    memory_dir = os.environ.get("SWARM_MEMORY_DIR")
    if memory_dir:
        overrides.setdefault("memory", {})["directory"] = memory_dir

    memory_file = os.environ.get("SWARM_MEMORY_FILE")
    if memory_file:
        overrides.setdefault("memory", {})["filename"] = memory_file

    interval = os.environ.get("SWARM_AUTOSAVE_INTERVAL")
    if interval:
        try:
            seconds = float(interval)
        except ValueError:
            _log.warning("Ignoring non-numeric SWARM_AUTOSAVE_INTERVAL=%r", interval)
        else:
            overrides.setdefault("memory", {})["autosave_interval"] = seconds

    return overrides


def _as_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass.

    Args:
        data: Merged configuration dictionary.

    Returns:
        Typed Config object.
    """
    defaults = MemoryConfig()
    memory_data = data.get("memory") or {}
    if not isinstance(memory_data, dict):
        _log.warning("Ignoring non-mapping 'memory' config section")
        memory_data = {}
    memory = MemoryConfig(
        directory=str(memory_data.get("directory", defaults.directory)),
        filename=str(memory_data.get("filename", defaults.filename)),
        autosave_interval=_as_float(
            memory_data.get("autosave_interval"), defaults.autosave_interval
        ),
    )

    log_data = data.get("logging") or {}
    if not isinstance(log_data, dict):
        log_data = {}
    verbose = log_data.get("verbose")
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=int(verbose) if isinstance(verbose, (int, float)) else None,
        file=log_data.get("file"),
    )

    known_keys = {"memory", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(memory=memory, logging=logging_config, extra=extra)


def load_config(session_root: str | Path | None = None, reload: bool = False) -> Config:
    """Load and merge config from every layer in config_paths() plus the environment.

    Args:
        session_root: Project directory for project-level config.
        reload: Force reload even if cached.

    Returns:
        Merged Config object.
    """
    global _cached_config

    if _cached_config is not None and not reload and session_root is None:
        return _cached_config

    configs: list[dict[str, Any]] = []

    for path in config_paths(session_root):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = dict_to_config(merge_configs(*configs))

    # Cache only global config (no session_root)
    if session_root is None:
        _cached_config = config

    return config


def get_config() -> Config:
    """Get the cached global config, loading it on first use."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config.

    Useful for testing or forcing a reload.
    """
    global _cached_config
    _cached_config = None


def resolve_memory_path(config: Config, session_root: str | Path | None = None) -> Path:
    """Get the snapshot file path described by ``config``.

    A relative memory directory is resolved against ``session_root``
    (default: the current working directory).
    """
    directory = Path(config.memory.directory).expanduser()
    if not directory.is_absolute():
        root = Path(session_root) if session_root is not None else Path.cwd()
        directory = root / directory
    return directory / config.memory.filename
