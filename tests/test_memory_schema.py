"""Tests for memory schemas, key patterns, timers and snapshot files."""

from __future__ import annotations

import json
import threading
import time
from pathlib import Path

import pytest

from swarmmemory.memory.patterns import compile_pattern, matches, namespace_of
from swarmmemory.memory.persistence import (
    SnapshotError,
    encode_snapshot,
    read_snapshot,
    write_snapshot,
)
from swarmmemory.memory.schema import MemoryEntry, Snapshot, StoreStats
from swarmmemory.memory.timers import AutoSaver, ExpiryHandle, ExpiryTimers
from tests.utils import wait_for


class TestMemoryEntry:
    """Tests for MemoryEntry dataclass."""

    def test_to_dict(self) -> None:
        entry = MemoryEntry(value={"a": 1}, created=1000, expires=2000, accessed=1500, access_count=3)
        assert entry.to_dict() == {
            "value": {"a": 1},
            "created": 1000,
            "expires": 2000,
            "accessed": 1500,
            "accessCount": 3,
        }

    def test_from_dict(self) -> None:
        entry = MemoryEntry.from_dict(
            {"value": [1, 2], "created": 10, "expires": None, "accessed": 20, "accessCount": 4}
        )
        assert entry.value == [1, 2]
        assert entry.expires is None
        assert entry.accessed == 20
        assert entry.access_count == 4

    def test_from_dict_defaults(self) -> None:
        entry = MemoryEntry.from_dict({"value": "x", "created": 10})
        assert entry.expires is None
        assert entry.accessed == 10
        assert entry.access_count == 1

    @pytest.mark.parametrize(
        "record",
        [
            "not a dict",
            {"created": 10},
            {"value": 1},
            {"value": 1, "created": "yesterday"},
            {"value": 1, "created": True},
            {"value": 1, "created": 10, "expires": "later"},
            {"value": 1, "created": float("inf")},
            {"value": 1, "created": 10, "expires": float("nan")},
        ],
    )
    def test_from_dict_rejects_malformed(self, record: object) -> None:
        with pytest.raises(ValueError):
            MemoryEntry.from_dict(record)

    def test_from_dict_non_finite_metadata_falls_back(self) -> None:
        entry = MemoryEntry.from_dict(
            {"value": 1, "created": 10, "accessed": float("-inf"), "accessCount": float("inf")}
        )
        assert entry.accessed == 10
        assert entry.access_count == 1

    def test_is_expired_boundary(self) -> None:
        entry = MemoryEntry(value=1, created=0, expires=100)
        assert not entry.is_expired(99)
        assert entry.is_expired(100)
        assert not MemoryEntry(value=1, created=0).is_expired(10**15)


class TestSnapshotAndStats:
    """Tests for Snapshot and StoreStats."""

    def test_snapshot_to_dict(self) -> None:
        snap = Snapshot(entries={"k": MemoryEntry(value=1, created=5, accessed=5)})
        d = snap.to_dict()
        assert d["version"] == "1.0.0"
        assert d["saved"].endswith("+00:00")
        assert d["entries"]["k"]["value"] == 1

    def test_stats_derived_counts(self) -> None:
        stats = StoreStats(
            total_keys=5,
            expired_entries=2,
            keys_with_ttl=1,
            keys_without_ttl=2,
            total_size=99,
            namespaces=["agent"],
            memory_file="/tmp/memory.json",
        )
        assert stats.total_entries == 5
        assert stats.active_entries == 3
        d = stats.to_dict()
        assert d["keysWithTTL"] == 1
        assert d["keysWithoutTTL"] == 2
        assert d["activeEntries"] == 3
        assert d["namespaces"] == ["agent"]


class TestPatterns:
    """Tests for glob compilation."""

    def test_star_matches_everything(self) -> None:
        assert matches("*", "")
        assert matches("*", "anything:at:all")

    def test_prefix(self) -> None:
        assert matches("agent:planner:*", "agent:planner:task1")
        assert matches("agent:planner:*", "agent:planner:")
        assert not matches("agent:planner:*", "agent:plannerX:foo")
        assert not matches("agent:planner:*", "xagent:planner:task1")

    def test_anchored_both_ends(self) -> None:
        assert not matches("task", "task1")
        assert not matches("task", "mytask")
        assert matches("*task", "mytask")

    def test_all_stars_expand(self) -> None:
        assert compile_pattern("a*b*c").fullmatch("a--b--c")
        assert matches("*:*:notes", "agent:dev:notes")

    def test_literal_metacharacters(self) -> None:
        assert matches("file.json", "file.json")
        assert not matches("file.json", "fileXjson")
        assert matches("[x]?", "[x]?")
        assert not matches("[x]?", "x")

    def test_newlines_in_keys(self) -> None:
        assert matches("a*", "a\nb")

    def test_namespace_of(self) -> None:
        assert namespace_of("agent:planner:task") == "agent"
        assert namespace_of("plain") == "plain"
        assert namespace_of(":orphan") == ""


class TestExpiryTimers:
    """Tests for the per-key expiry registry."""

    def test_fires_with_own_handle(self) -> None:
        fired: list[tuple[str, ExpiryHandle]] = []
        timers = ExpiryTimers(lambda key, handle: fired.append((key, handle)))
        handle = timers.schedule("k", 10)
        assert wait_for(lambda: len(fired) == 1)
        assert fired[0] == ("k", handle)
        assert timers.is_current("k", handle)
        timers.release("k", handle)
        assert "k" not in timers
        timers.stop()

    def test_fires_in_deadline_order(self) -> None:
        fired: list[str] = []
        timers = ExpiryTimers(lambda key, handle: fired.append(key))
        timers.schedule("late", 80)
        timers.schedule("early", 10)
        timers.schedule("middle", 40)
        assert wait_for(lambda: len(fired) == 3)
        assert fired == ["early", "middle", "late"]
        timers.stop()

    def test_reschedule_cancels_previous(self) -> None:
        fired: list[str] = []
        timers = ExpiryTimers(lambda key, handle: fired.append(key))
        first = timers.schedule("k", 20)
        second = timers.schedule("k", 60_000)
        time.sleep(0.1)
        assert fired == []
        assert first.cancelled
        assert not timers.is_current("k", first)
        assert timers.is_current("k", second)
        assert len(timers) == 1
        timers.stop()

    def test_release_ignores_stale_handle(self) -> None:
        timers = ExpiryTimers(lambda key, handle: None)
        first = timers.schedule("k", 60_000)
        timers.schedule("k", 60_000)
        timers.release("k", first)
        assert "k" in timers
        assert timers.cancel_all() == 1
        timers.stop()

    def test_cancel(self) -> None:
        fired: list[str] = []
        timers = ExpiryTimers(lambda key, handle: fired.append(key))
        timers.schedule("k", 20)
        assert timers.cancel("k") is True
        assert timers.cancel("k") is False
        time.sleep(0.1)
        assert fired == []
        timers.stop()

    def test_many_keys_share_one_worker(self) -> None:
        timers = ExpiryTimers(lambda key, handle: None)
        before = threading.active_count()
        for i in range(500):
            timers.schedule(f"k{i}", 60_000 + i)
        assert len(timers) == 500
        assert threading.active_count() - before <= 1
        assert timers.worker_running
        timers.stop()
        assert not timers.worker_running

    def test_huge_delay_does_not_crash_worker(self) -> None:
        fired: list[str] = []
        timers = ExpiryTimers(lambda key, handle: fired.append(key))
        timers.schedule("forever", 1e300)
        timers.schedule("soon", 10)
        assert wait_for(lambda: fired == ["soon"])
        assert "forever" in timers
        assert timers.worker_running
        timers.stop()

    def test_callback_error_does_not_stop_worker(self) -> None:
        fired: list[str] = []

        def on_expire(key: str, handle: ExpiryHandle) -> None:
            if key == "bad":
                raise RuntimeError("boom")
            fired.append(key)

        timers = ExpiryTimers(on_expire)
        timers.schedule("bad", 5)
        timers.schedule("good", 30)
        assert wait_for(lambda: fired == ["good"])
        timers.stop()

    def test_schedule_after_stop_restarts_worker(self) -> None:
        fired: list[str] = []
        timers = ExpiryTimers(lambda key, handle: fired.append(key))
        timers.schedule("a", 60_000)
        timers.stop()
        assert "a" not in timers
        timers.schedule("b", 10)
        assert wait_for(lambda: fired == ["b"])
        timers.stop()


class TestAutoSaver:
    """Tests for the periodic snapshot ticker."""

    def test_ticks_until_stopped(self) -> None:
        calls: list[int] = []
        saver = AutoSaver(lambda: calls.append(1), interval=0.01)
        saver.start()
        assert saver.running
        assert wait_for(lambda: len(calls) >= 2)
        saver.stop()
        assert not saver.running
        count = len(calls)
        time.sleep(0.05)
        assert len(calls) == count

    def test_rejects_non_positive_interval(self) -> None:
        with pytest.raises(ValueError):
            AutoSaver(lambda: None, interval=0)


class TestSnapshotFiles:
    """Tests for reading and writing snapshot files."""

    def test_write_then_read(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "memory.json"
        snap = Snapshot(entries={"k": MemoryEntry(value={"x": 1}, created=1, accessed=1)})
        write_snapshot(path, encode_snapshot(snap))
        entries = read_snapshot(path)
        assert entries["k"].value == {"x": 1}
        assert not (tmp_path / "nested" / "memory.json.tmp").exists()

    def test_read_missing(self, tmp_path: Path) -> None:
        assert read_snapshot(tmp_path / "absent.json") == {}

    def test_read_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "memory.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(SnapshotError):
            read_snapshot(path)

    def test_read_bad_entries_field(self, tmp_path: Path) -> None:
        path = tmp_path / "memory.json"
        path.write_text(json.dumps({"entries": [1, 2]}), encoding="utf-8")
        with pytest.raises(SnapshotError):
            read_snapshot(path)

    def test_read_without_entries(self, tmp_path: Path) -> None:
        path = tmp_path / "memory.json"
        path.write_text(json.dumps({"version": "1.0.0"}), encoding="utf-8")
        assert read_snapshot(path) == {}

    def test_encode_rejects_unserializable(self) -> None:
        snap = Snapshot(entries={"k": MemoryEntry(value=object(), created=1)})
        with pytest.raises(SnapshotError):
            encode_snapshot(snap)

    def test_write_failure(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        with pytest.raises(SnapshotError):
            write_snapshot(blocker / "memory.json", "{}")
