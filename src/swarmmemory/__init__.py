"""swarm-memory: shared TTL memory store for coordinating agents."""

__version__ = "0.1.0"

from swarmmemory.config import Config, get_config, load_config
from swarmmemory.memory import MemoryEntry, MemoryStore, StoreStats

__all__ = [
    "Config",
    "MemoryEntry",
    "MemoryStore",
    "StoreStats",
    "get_config",
    "load_config",
]
