"""Data schemas for the shared memory store."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

SNAPSHOT_VERSION = "1.0.0"


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


@dataclass
class MemoryEntry:
    """A stored value plus its timing metadata.

    All timestamps are epoch milliseconds.
    """

    value: Any
    created: float
    expires: float | None = None  # None = never expires
    accessed: float = 0.0
    access_count: int = 1

    def is_expired(self, now_ms: float) -> bool:
        return self.expires is not None and now_ms >= self.expires

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "created": self.created,
            "expires": self.expires,
            "accessed": self.accessed,
            "accessCount": self.access_count,
        }

    @classmethod
    def from_dict(cls, data: Any) -> MemoryEntry:
        """Build an entry from its snapshot record.

        Raises:
            ValueError: If the record is not a well-formed entry.
        """
        if not isinstance(data, dict):
            raise ValueError(f"entry must be an object, got {type(data).__name__}")
        if "value" not in data:
            raise ValueError("entry has no 'value'")

        created = data.get("created")
        if not _is_number(created):
            raise ValueError(f"invalid 'created' timestamp: {created!r}")

        expires = data.get("expires")
        if expires is not None and not _is_number(expires):
            raise ValueError(f"invalid 'expires' timestamp: {expires!r}")

        accessed = data.get("accessed", created)
        if not _is_number(accessed):
            accessed = created

        access_count = data.get("accessCount", 1)
        if not _is_number(access_count):
            access_count = 1

        return cls(
            value=data["value"],
            created=created,
            expires=expires,
            accessed=accessed,
            access_count=int(access_count),
        )


@dataclass
class Snapshot:
    """The full on-disk image of a store."""

    version: str = SNAPSHOT_VERSION
    saved: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    entries: dict[str, MemoryEntry] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "saved": self.saved.isoformat(),
            "entries": {key: entry.to_dict() for key, entry in self.entries.items()},
        }


@dataclass
class StoreStats:
    """Aggregate counters reported by ``MemoryStore.stats()``.

    Only ``total_keys``, ``total_entries`` and ``expired_entries`` include
    entries that are expired but not yet swept. The TTL counts, size and
    namespaces describe active entries only.
    """

    total_keys: int
    expired_entries: int
    keys_with_ttl: int
    keys_without_ttl: int
    total_size: int
    namespaces: list[str]
    memory_file: str

    @property
    def total_entries(self) -> int:
        return self.total_keys

    @property
    def active_entries(self) -> int:
        return self.total_keys - self.expired_entries

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalKeys": self.total_keys,
            "totalEntries": self.total_entries,
            "expiredEntries": self.expired_entries,
            "activeEntries": self.active_entries,
            "keysWithTTL": self.keys_with_ttl,
            "keysWithoutTTL": self.keys_without_ttl,
            "totalSize": self.total_size,
            "namespaces": list(self.namespaces),
            "memoryFile": self.memory_file,
        }
