"""Snapshot file reading and writing.

The snapshot is a single JSON document:

    {
      "version": "1.0.0",
      "saved": "<ISO-8601 timestamp>",
      "entries": {"<key>": {"value": ..., "created": ms, "expires": ms|null,
                            "accessed": ms, "accessCount": n}}
    }

These helpers raise ``SnapshotError``; the store decides how to degrade.
"""

from __future__ import annotations

import json
from pathlib import Path

from swarmmemory.logging import get_logger
from swarmmemory.memory.schema import MemoryEntry, Snapshot

log = get_logger("persistence")


class SnapshotError(Exception):
    """Raised when a snapshot cannot be read, decoded, encoded or written."""


def encode_snapshot(snapshot: Snapshot) -> str:
    """Serialize a snapshot to JSON text.

    Raises:
        SnapshotError: If a stored value is not JSON-serializable.
    """
    try:
        return json.dumps(snapshot.to_dict(), indent=2)
    except (TypeError, ValueError) as e:
        raise SnapshotError(f"Cannot encode snapshot: {e}") from e


def write_snapshot(path: Path, text: str) -> None:
    """Write encoded snapshot text to ``path``.

    Writes to a sibling temp file first, then replaces the target. Parent
    directories are created as needed.

    Raises:
        SnapshotError: On any filesystem error.
    """
    temp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_path, "w", encoding="utf-8") as f:
            f.write(text)
        temp_path.replace(path)
    except OSError as e:
        if temp_path.exists():
            temp_path.unlink(missing_ok=True)
        raise SnapshotError(f"Cannot write snapshot to {path}: {e}") from e
    log.debug("Saved snapshot to %s", path)


def read_snapshot(path: Path) -> dict[str, MemoryEntry]:
    """Read the entries stored in the snapshot at ``path``.

    A missing file yields no entries. Individual malformed entries are
    logged and skipped so the rest of the file still loads.

    Raises:
        SnapshotError: If the file cannot be read or is not a snapshot.
    """
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SnapshotError(f"Invalid JSON in {path}: {e}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise SnapshotError(f"Cannot read {path}: {e}") from e

    if not isinstance(data, dict):
        raise SnapshotError(f"Snapshot {path} is not a JSON object")

    raw_entries = data.get("entries") or {}
    if not isinstance(raw_entries, dict):
        raise SnapshotError(f"Snapshot {path} has a non-object 'entries' field")

    entries: dict[str, MemoryEntry] = {}
    for key, record in raw_entries.items():
        try:
            entries[key] = MemoryEntry.from_dict(record)
        except ValueError as e:
            log.warning("Skipping malformed entry %r in %s: %s", key, path, e)
    return entries
