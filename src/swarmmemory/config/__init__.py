"""Configuration management for swarm-memory.

Provides hierarchical YAML-based configuration with:
- System-level config (/etc/swarmmemory/ or %PROGRAMDATA%)
- User-level config ($XDG_CONFIG_HOME or ~/.config/swarmmemory/, or %APPDATA%)
- Project-level config ($session_root/.swarm/)
- Environment variable overrides (highest priority)

Example usage:
    from swarmmemory.config import load_config, resolve_memory_path

    config = load_config(session_root="/path/to/project")
    print(config.memory.autosave_interval)
    print(resolve_memory_path(config, "/path/to/project"))
"""

from swarmmemory.config.loader import (
    config_paths,
    get_config,
    load_config,
    reset_config,
    resolve_memory_path,
)
from swarmmemory.config.schema import Config, LoggingConfig, MemoryConfig

__all__ = [
    # Main API
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "resolve_memory_path",
    # Schema types
    "MemoryConfig",
    "LoggingConfig",
    # Path lookup
    "config_paths",
]
