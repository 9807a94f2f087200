"""Deferred jobs used by the memory store.

``ExpiryTimers`` keeps at most one pending expiry per key and runs them all
from a single daemon worker. ``AutoSaver`` is a background ticker that
snapshots the store on a fixed interval.
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections.abc import Callable
from typing import Any

from swarmmemory.logging import get_logger

log = get_logger("timers")

# Longest single wait of the expiry worker, in seconds (below threading.TIMEOUT_MAX)
_MAX_WAIT = 3600.0
# Delays are capped at ten years
_MAX_DELAY_MS = 10.0 * 365 * 24 * 3600 * 1000


class ExpiryHandle:
    """One scheduled expiry. Identity is what matters, not value."""

    __slots__ = ("key", "deadline", "cancelled")

    def __init__(self, key: str, deadline: float) -> None:
        self.key = key
        self.deadline = deadline  # time.monotonic() seconds
        self.cancelled = False

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "pending"
        return f"ExpiryHandle({self.key!r}, {state})"


# Called with (key, handle) when an expiry comes due
ExpireCallback = Callable[[str, ExpiryHandle], None]


class ExpiryTimers:
    """Registry of pending per-key expiries served by one worker thread.

    Deadlines sit in a heap; the worker sleeps on a condition until the
    nearest one. Cancelled handles stay in the heap and are skipped when
    they surface. The callback runs outside the registry lock and receives
    its own handle, so the owner can ignore an expiry that was replaced
    after it came due.
    """

    def __init__(self, on_expire: ExpireCallback) -> None:
        self._on_expire = on_expire
        self._current: dict[str, ExpiryHandle] = {}
        self._heap: list[tuple[float, int, ExpiryHandle]] = []
        self._seq = itertools.count()
        self._cond = threading.Condition()
        self._worker: threading.Thread | None = None
        self._stopping = False

    def schedule(self, key: str, delay_ms: float) -> ExpiryHandle:
        """Arm an expiry for ``key`` after ``delay_ms``, replacing any pending one."""
        delay = min(max(delay_ms, 0.0), _MAX_DELAY_MS) / 1000.0
        with self._cond:
            self._cancel_locked(key)
            handle = ExpiryHandle(key, time.monotonic() + delay)
            self._current[key] = handle
            heapq.heappush(self._heap, (handle.deadline, next(self._seq), handle))
            self._ensure_worker_locked()
            self._cond.notify()
        return handle

    def cancel(self, key: str) -> bool:
        """Cancel the pending expiry for ``key``. Returns True if one existed."""
        with self._cond:
            return self._cancel_locked(key)

    def cancel_all(self) -> int:
        with self._cond:
            count = len(self._current)
            for handle in self._current.values():
                handle.cancelled = True
            self._current.clear()
            self._heap.clear()
            self._cond.notify()
        return count

    def is_current(self, key: str, handle: ExpiryHandle) -> bool:
        with self._cond:
            return self._current.get(key) is handle

    def release(self, key: str, handle: ExpiryHandle) -> None:
        """Forget a fired expiry, but only if it is still the registered one."""
        with self._cond:
            if self._current.get(key) is handle:
                del self._current[key]

    def stop(self, timeout: float | None = 5.0) -> None:
        """Cancel everything and shut the worker down.

        A later schedule() starts a fresh worker.
        """
        with self._cond:
            for handle in self._current.values():
                handle.cancelled = True
            self._current.clear()
            self._heap.clear()
            self._stopping = True
            self._cond.notify_all()
            worker = self._worker
            self._worker = None
        if worker is not None and worker is not threading.current_thread():
            worker.join(timeout)

    @property
    def worker_running(self) -> bool:
        worker = self._worker
        return worker is not None and worker.is_alive()

    def __contains__(self, key: object) -> bool:
        with self._cond:
            return key in self._current

    def __len__(self) -> int:
        with self._cond:
            return len(self._current)

    def _cancel_locked(self, key: str) -> bool:
        handle = self._current.pop(key, None)
        if handle is None:
            return False
        handle.cancelled = True
        return True

    def _ensure_worker_locked(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._stopping = False
        self._worker = threading.Thread(
            target=self._run, name="swarmmemory-expiry", daemon=True
        )
        self._worker.start()

    def _next_due(self) -> ExpiryHandle | None:
        """Block until an expiry is due; None once the registry is stopped."""
        with self._cond:
            while not self._stopping:
                while self._heap and self._heap[0][2].cancelled:
                    heapq.heappop(self._heap)
                if not self._heap:
                    self._cond.wait()
                    continue
                remaining = self._heap[0][0] - time.monotonic()
                if remaining <= 0:
                    return heapq.heappop(self._heap)[2]
                self._cond.wait(min(remaining, _MAX_WAIT))
            return None

    def _run(self) -> None:
        while True:
            handle = self._next_due()
            if handle is None:
                return
            try:
                self._on_expire(handle.key, handle)
            except Exception:
                log.exception("Expiry callback failed for %s", handle.key)


class AutoSaver:
    """Periodic snapshot job.

    Runs ``save`` every ``interval`` seconds on a daemon thread until
    ``stop()`` is called.
    """

    def __init__(self, save: Callable[[], Any], interval: float) -> None:
        if interval <= 0:
            raise ValueError("autosave interval must be positive")
        self._save = save
        self._interval = interval
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run, name="swarmmemory-autosave", daemon=True
        )
        self._thread.start()
        log.debug("Autosave started (every %.1fs)", self._interval)

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            log.debug("Autosave stopped")

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self._save()
