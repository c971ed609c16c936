"""Shared pytest fixtures.

Provides a controllable clock so that grace-window decisions can be
exercised without sleeping, and a database/coordinator pair wired to it.
"""

from __future__ import annotations

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from progresssync.server.coordinator import SyncCoordinator
from progresssync.server.database import Database

START = datetime(2025, 3, 1, 10, 0, 0, tzinfo=UTC)


class FakeClock:
    """Callable returning a manually advanced UTC time."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int) -> datetime:
        """Move the clock forward and return the new time."""
        self.now += timedelta(milliseconds=ms)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    """Create a clock frozen at START."""
    return FakeClock()


@pytest.fixture
def db(tmp_path: Path, clock: FakeClock) -> Generator[Database, None, None]:
    """Create a test database."""
    database = Database(tmp_path / "test.db", clock=clock)
    yield database
    database.close()


@pytest.fixture
def coordinator(db: Database, clock: FakeClock) -> SyncCoordinator:
    """Create a coordinator over the test database."""
    return SyncCoordinator(db, clock=clock)
