"""Configuration schema dataclasses for swarm-memory.

Defines the structure of configuration at all levels (system, user, project).
All fields have defaults so partial configs merge together cleanly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class MemoryConfig:
    """Shared memory store configuration.

    Example config.yaml:
        memory:
          directory: .swarm
          filename: memory.json
          autosave_interval: 30
    """

    directory: str = ".swarm"  # Relative to the session root unless absolute
    filename: str = "memory.json"
    autosave_interval: float = 30.0  # Seconds between full snapshots; 0 disables


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # -v count; 0 warning, 1 info, 2+ debug; overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    memory: MemoryConfig = field(default_factory=MemoryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level sections are kept here
    extra: dict[str, Any] = field(default_factory=dict)
