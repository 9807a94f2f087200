"""Command-line interface for inspecting and editing a memory snapshot."""

from __future__ import annotations

import argparse
import json
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table

from swarmmemory import __version__
from swarmmemory.config import load_config
from swarmmemory.logging import get_logger, setup_logging
from swarmmemory.memory import MemoryStore

log = get_logger("cli")

_MISSING = object()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="swarm-memory",
        description="Inspect and edit the shared agent memory store",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Project root containing .swarm/ (default: current directory)",
    )
    parser.add_argument(
        "--file",
        type=Path,
        default=None,
        help="Snapshot file to use instead of the configured one",
    )

    subparsers = parser.add_subparsers(dest="command", help="Operation")

    get_parser = subparsers.add_parser("get", help="Print the value stored under a key")
    get_parser.add_argument("key")

    set_parser = subparsers.add_parser("set", help="Store a value (parsed as JSON if possible)")
    set_parser.add_argument("key")
    set_parser.add_argument("value")
    set_parser.add_argument(
        "--ttl",
        type=float,
        default=None,
        help="Time to live in milliseconds",
    )

    delete_parser = subparsers.add_parser("delete", help="Delete a key")
    delete_parser.add_argument("key")

    keys_parser = subparsers.add_parser("keys", help="List keys matching a pattern")
    keys_parser.add_argument("pattern", nargs="?", default="*")

    dump_parser = subparsers.add_parser("dump", help="Print keys and values matching a pattern")
    dump_parser.add_argument("pattern", nargs="?", default="*")

    clear_parser = subparsers.add_parser("clear", help="Delete keys matching a pattern (all if omitted)")
    clear_parser.add_argument("pattern", nargs="?", default=None)

    subparsers.add_parser("cleanup", help="Remove expired entries")
    subparsers.add_parser("stats", help="Show store statistics")

    return parser


def parse_value(raw: str) -> Any:
    """Interpret a command-line value as JSON, falling back to the raw string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def _open_store(parsed: argparse.Namespace) -> MemoryStore:
    root = parsed.root if parsed.root is not None else Path.cwd()
    config = load_config(session_root=root)
    if parsed.verbose:
        config.logging.verbose = parsed.verbose
    setup_logging(config.logging)

    if parsed.file is not None:
        return MemoryStore(parsed.file, autosave_interval=None)
    return MemoryStore.from_config(config, root, autosave_interval=None)


def _stats_table(store: MemoryStore) -> Table:
    stats = store.stats()
    table = Table(title="Memory Store")
    table.add_column("Metric", style="bold")
    table.add_column("Value")
    table.add_row("File", stats.memory_file)
    table.add_row("Total keys", str(stats.total_keys))
    table.add_row("Active", str(stats.active_entries))
    table.add_row("Expired (unswept)", str(stats.expired_entries))
    table.add_row("With TTL", str(stats.keys_with_ttl))
    table.add_row("Without TTL", str(stats.keys_without_ttl))
    table.add_row("Size (bytes)", str(stats.total_size))
    table.add_row("Namespaces", ", ".join(stats.namespaces) or "-")
    return table


def _dispatch(parsed: argparse.Namespace, store: MemoryStore, console: Console, err: Console) -> int:
    command = parsed.command

    if command == "get":
        value = store.get(parsed.key, _MISSING)
        if value is _MISSING:
            err.print(f"Not found: {parsed.key}", markup=False)
            return 1
        console.print_json(data=value)
        return 0

    if command == "set":
        store.set(parsed.key, parse_value(parsed.value), parsed.ttl)
        console.print("OK")
        return 0

    if command == "delete":
        if store.delete(parsed.key):
            console.print("1")
            return 0
        err.print(f"Not found: {parsed.key}", markup=False)
        return 1

    if command == "keys":
        for key in store.keys(parsed.pattern):
            console.print(key, markup=False)
        return 0

    if command == "dump":
        console.print_json(data=store.get_by_pattern(parsed.pattern))
        return 0

    if command == "clear":
        if parsed.pattern is None:
            count = len(store)
            store.clear()
        else:
            count = store.clear_pattern(parsed.pattern)
        console.print(str(count))
        return 0

    if command == "cleanup":
        console.print(str(store.cleanup()))
        return 0

    if command == "stats":
        console.print(_stats_table(store))
        return 0

    return 2


def run_cli(args: Sequence[str]) -> int:
    """Run the CLI with the given arguments."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if parsed.command is None:
        parser.print_help()
        return 2

    console = Console(highlight=False, soft_wrap=True)
    err = Console(stderr=True, highlight=False)

    store = _open_store(parsed)
    log.debug("Using memory file %s", store.path)
    try:
        return _dispatch(parsed, store, console, err)
    finally:
        store.close()
