"""TTL key-value store shared by agents.

The store keeps every entry in memory and mirrors the whole map to a JSON
snapshot file after each mutation and on a periodic autosave tick. Agents
running in separate processes coordinate by pointing their stores at the
same file; concurrent writers get last-writer-wins.
"""

from __future__ import annotations

import json
import os
import threading
import time
from collections.abc import Callable
from pathlib import Path
from types import TracebackType
from typing import Any

from swarmmemory.config.schema import Config, MemoryConfig
from swarmmemory.logging import get_logger
from swarmmemory.memory.patterns import WILDCARD, matches, namespace_of
from swarmmemory.memory.persistence import (
    SnapshotError,
    encode_snapshot,
    read_snapshot,
    write_snapshot,
)
from swarmmemory.memory.schema import MemoryEntry, Snapshot, StoreStats
from swarmmemory.memory.timers import AutoSaver, ExpiryHandle, ExpiryTimers

log = get_logger("store")

DEFAULT_AUTOSAVE_INTERVAL = MemoryConfig.autosave_interval

_MISSING = object()


def epoch_ms() -> float:
    """Current wall-clock time in epoch milliseconds."""
    return time.time() * 1000.0


def is_test_environment() -> bool:
    """True when running under a test harness (SWARM_ENV=test)."""
    return os.environ.get("SWARM_ENV", "").strip().lower() == "test"


class MemoryStore:
    """In-process key-value store with per-entry TTL and JSON snapshots.

    Keys are free-form strings, conventionally namespaced with colons
    (``agent:planner:task1``). Values are opaque JSON-compatible data.
    TTLs are given in milliseconds.

    Expiry is enforced twice: a background worker deletes each TTL
    entry when it elapses, and every read re-checks the deadline so an entry is never
    served late even if its timer has not fired yet.

    Not-found is reported through return values. Snapshot I/O failures are
    logged and never raised; the in-memory map stays authoritative.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        autosave_interval: float | None = DEFAULT_AUTOSAVE_INTERVAL,
        autoload: bool = True,
        clock: Callable[[], float] = epoch_ms,
    ) -> None:
        """Create a store backed by the snapshot file at ``path``.

        Args:
            path: Snapshot file. Its directory is created if missing.
            autosave_interval: Seconds between periodic full snapshots.
                None or 0 disables the ticker; it never runs when
                SWARM_ENV=test.
            autoload: Load the existing snapshot during construction.
            clock: Returns the current epoch time in milliseconds.
        """
        self._path = Path(path)
        self._clock = clock
        self._entries: dict[str, MemoryEntry] = {}
        self._lock = threading.RLock()
        self._io_lock = threading.Lock()
        self._timers = ExpiryTimers(self._on_timer)
        self._autosaver: AutoSaver | None = None

        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            log.warning("Cannot create memory directory %s: %s", self._path.parent, e)

        if autoload:
            self.load()

        if autosave_interval and autosave_interval > 0 and not is_test_environment():
            self._autosaver = AutoSaver(self.save, autosave_interval)
            self._autosaver.start()

    @classmethod
    def from_config(
        cls,
        config: Config | None = None,
        session_root: str | Path | None = None,
        **kwargs: Any,
    ) -> MemoryStore:
        """Build a store whose location and autosave come from config.

        Args:
            config: Loaded config; loaded for ``session_root`` if omitted.
            session_root: Project directory the memory directory is
                relative to (default: cwd).
            **kwargs: Passed through to the constructor.
        """
        from swarmmemory.config import load_config, resolve_memory_path

        if config is None:
            config = load_config(session_root=session_root)
        kwargs.setdefault("autosave_interval", config.memory.autosave_interval)
        return cls(resolve_memory_path(config, session_root), **kwargs)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def autosave_running(self) -> bool:
        return self._autosaver is not None and self._autosaver.running

    def _now(self) -> float:
        return self._clock()

    # =========================================================================
    # Core operations
    # =========================================================================

    def set(self, key: str, value: Any, ttl: float | None = None) -> Any:
        """Store ``value`` under ``key``, replacing any existing entry.

        Any pending expiry for the key is cancelled first, so an earlier
        TTL can never remove the new value.

        Args:
            key: Entry key.
            value: JSON-compatible data.
            ttl: Time to live in milliseconds. None or 0 means no expiry.

        Returns:
            The stored value.
        """
        now = self._now()
        with self._lock:
            self._timers.cancel(key)
            expires = now + ttl if ttl else None
            self._entries[key] = MemoryEntry(
                value=value,
                created=now,
                expires=expires,
                accessed=now,
                access_count=1,
            )
            if expires is not None:
                self._timers.schedule(key, ttl)
        log.debug("Set %s (ttl=%s)", key, ttl)
        self.save()
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value for ``key``, or ``default`` if absent or expired.

        A successful read updates the entry's access time and count.
        """
        now = self._now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if not entry.is_expired(now):
                entry.accessed = now
                entry.access_count += 1
                return entry.value
            self._remove_locked(key)
        log.debug("Expired %s on read", key)
        self.save()
        return default

    def has(self, key: str) -> bool:
        """Check whether ``key`` holds a live entry (access metadata untouched)."""
        now = self._now()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            if not entry.is_expired(now):
                return True
            self._remove_locked(key)
        self.save()
        return False

    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if an entry was removed."""
        with self._lock:
            removed = self._remove_locked(key)
        if removed:
            log.debug("Deleted %s", key)
            self.save()
        return removed

    # =========================================================================
    # Pattern operations
    # =========================================================================

    def keys(self, pattern: str = WILDCARD) -> list[str]:
        """List live keys matching a glob ``pattern``, in insertion order.

        ``*`` matches any run of characters and the pattern must cover the
        whole key. Expired entries met during the scan are removed.
        """
        now = self._now()
        with self._lock:
            swept = self._sweep_locked(now)
            result = [key for key in self._entries if matches(pattern, key)]
        if swept:
            self.save()
        return result

    def get_by_pattern(self, pattern: str) -> dict[str, Any]:
        """Map each live key matching ``pattern`` to its value."""
        result: dict[str, Any] = {}
        for key in self.keys(pattern):
            value = self.get(key, _MISSING)
            if value is not _MISSING:
                result[key] = value
        return result

    def clear_pattern(self, pattern: str) -> int:
        """Delete every live key matching ``pattern``. Returns the count."""
        now = self._now()
        with self._lock:
            swept = self._sweep_locked(now)
            matched = [key for key in self._entries if matches(pattern, key)]
            for key in matched:
                self._remove_locked(key)
        if swept or matched:
            log.debug("Cleared %d keys matching %r", len(matched), pattern)
            self.save()
        return len(matched)

    def clear(self) -> None:
        """Remove every entry and cancel all pending expiries."""
        with self._lock:
            self._timers.cancel_all()
            self._entries.clear()
        self.save()

    def cleanup(self) -> int:
        """Remove all expired entries now. Returns how many were removed."""
        with self._lock:
            removed = self._sweep_locked(self._now())
        if removed:
            log.debug("Cleanup removed %d expired entries", removed)
            self.save()
        return removed

    def stats(self) -> StoreStats:
        """Summarize the store without modifying it."""
        now = self._now()
        expired = with_ttl = without_ttl = total_size = 0
        namespaces: dict[str, None] = {}
        with self._lock:
            total = len(self._entries)
            for key, entry in self._entries.items():
                if entry.is_expired(now):
                    expired += 1
                    continue
                if entry.expires is not None:
                    with_ttl += 1
                else:
                    without_ttl += 1
                total_size += len(json.dumps(entry.to_dict(), default=str))
                namespace = namespace_of(key)
                if namespace:
                    namespaces[namespace] = None

        return StoreStats(
            total_keys=total,
            expired_entries=expired,
            keys_with_ttl=with_ttl,
            keys_without_ttl=without_ttl,
            total_size=total_size,
            namespaces=list(namespaces),
            memory_file=str(self._path),
        )

    def has_pending_expiry(self, key: str) -> bool:
        """Check whether an expiry timer is armed for ``key``."""
        with self._lock:
            return key in self._timers

    # =========================================================================
    # Persistence
    # =========================================================================

    def save(self) -> bool:
        """Write a full snapshot to disk.

        Returns:
            True on success. Failures are logged and return False.
        """
        with self._io_lock:
            try:
                with self._lock:
                    text = encode_snapshot(Snapshot(entries=dict(self._entries)))
                write_snapshot(self._path, text)
            except SnapshotError as e:
                log.warning("Failed to save memory: %s", e)
                return False
        return True

    def load(self) -> int:
        """Merge the on-disk snapshot into memory.

        Entries already past their deadline are dropped. The rest get a
        timer for their remaining lifetime, not their original TTL.

        Returns:
            Number of entries restored. A missing or unreadable file
            restores nothing.
        """
        try:
            entries = read_snapshot(self._path)
        except SnapshotError as e:
            log.warning("Failed to load memory: %s", e)
            return 0

        now = self._now()
        restored = 0
        with self._lock:
            for key, entry in entries.items():
                if entry.is_expired(now):
                    continue
                self._timers.cancel(key)
                self._entries[key] = entry
                if entry.expires is not None:
                    self._timers.schedule(key, entry.expires - now)
                restored += 1

        if restored:
            log.info("Loaded %d entries from %s", restored, self._path)
        return restored

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def destroy(self) -> None:
        """Stop background jobs and drop everything in memory.

        Does not flush to disk; call save() first if that matters.
        """
        if self._autosaver is not None:
            self._autosaver.stop()
            self._autosaver = None
        self._timers.stop()
        with self._lock:
            self._entries.clear()

    def close(self) -> None:
        """Flush a final snapshot, then destroy()."""
        self.save()
        self.destroy()

    def __enter__(self) -> MemoryStore:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    # =========================================================================
    # Internals (callers hold self._lock)
    # =========================================================================

    def _remove_locked(self, key: str) -> bool:
        self._timers.cancel(key)
        return self._entries.pop(key, None) is not None

    def _sweep_locked(self, now: float) -> int:
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            self._remove_locked(key)
        return len(expired)

    def _on_timer(self, key: str, handle: ExpiryHandle) -> None:
        with self._lock:
            if not self._timers.is_current(key, handle):
                return
            self._timers.release(key, handle)
            removed = self._entries.pop(key, None) is not None
        if removed:
            log.debug("Expired %s", key)
            self.save()
