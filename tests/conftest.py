"""Root pytest configuration for all tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from swarmmemory.config import reset_config
from swarmmemory.logging import reset_logging
from swarmmemory.memory import MemoryStore
from tests.utils import FakeClock

_ENV_VARS = (
    "SWARM_LOG",
    "SWARM_MEMORY_DIR",
    "SWARM_MEMORY_FILE",
    "SWARM_AUTOSAVE_INTERVAL",
)


@pytest.fixture(autouse=True)
def test_environment(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Mark the process as a test run and isolate env-driven config."""
    monkeypatch.setenv("SWARM_ENV", "test")
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config()
    yield
    reset_config()
    reset_logging()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_path(tmp_path: Path) -> Path:
    return tmp_path / ".swarm" / "memory.json"


@pytest.fixture
def store(memory_path: Path, clock: FakeClock) -> Iterator[MemoryStore]:
    """A store on a temp file driven by the fake clock."""
    memory = MemoryStore(memory_path, clock=clock)
    yield memory
    memory.destroy()


@pytest.fixture
def live_store(memory_path: Path) -> Iterator[MemoryStore]:
    """A store on the real clock, for tests that exercise expiry timers."""
    memory = MemoryStore(memory_path)
    yield memory
    memory.destroy()
