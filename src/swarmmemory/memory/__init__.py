"""Shared agent memory.

A TTL key-value store that agents use to exchange transient state,
mirrored to a JSON snapshot file so other processes can read it.
"""

from swarmmemory.memory.persistence import SnapshotError
from swarmmemory.memory.schema import MemoryEntry, Snapshot, StoreStats
from swarmmemory.memory.store import MemoryStore, is_test_environment

__all__ = [
    "MemoryEntry",
    "MemoryStore",
    "Snapshot",
    "SnapshotError",
    "StoreStats",
    "is_test_environment",
]
