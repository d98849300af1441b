"""Test fixtures and factory helpers.

This module provides:
- ``make_event`` and ``make_line`` factories for events and ingestion lines
- A ``repository`` fixture parametrized over the in-memory and SQLite backends
- ``tracker`` and ``pipeline`` fixtures wired to that repository
- ``write_event_file`` for building ingestion sources under ``tmp_path``

Timestamps in tests are anchored on 2023-01-01 UTC; ``at(hour, minute)``
returns an instant on that day.
"""

import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional, Sequence

import pytest

from chronologicon.event import HistoricalEvent
from chronologicon.pipeline import IngestionPipeline
from chronologicon.storage import InMemoryEventRepository, SQLiteEventRepository
from chronologicon.tracker import IngestionJobTracker

BASE_DAY = datetime(2023, 1, 1, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, day_offset: int = 0) -> datetime:
    """Return an instant on the base test day (or an offset day)."""
    return BASE_DAY + timedelta(days=day_offset, hours=hour, minutes=minute)


def new_id() -> str:
    return str(uuid.uuid4())


def make_event(
    name: str = "Test Event",
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    event_id: Optional[str] = None,
    parent_id: Optional[str] = None,
    research_value: int = 0,
    description: str = "",
) -> HistoricalEvent:
    """Create an event; defaults to a one hour slot starting at 09:00."""
    start = start or at(9)
    end = end or (start + timedelta(hours=1))
    return HistoricalEvent(
        event_id=event_id or new_id(),
        name=name,
        description=description,
        start=start,
        end=end,
        parent_id=parent_id,
        research_value=research_value,
    )


def fmt(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def make_line(
    event_id: Optional[str] = None,
    name: str = "Test Event",
    start: str = "2023-01-01T10:00:00.000Z",
    end: str = "2023-01-01T11:00:00.000Z",
    parent_id: str = "NULL",
    research_value: str = "5",
    description: str = "A test record",
) -> str:
    """Build one pipe-delimited record line."""
    return "|".join([event_id or new_id(), name, start, end, parent_id, research_value, description])


def write_event_file(directory: Path, lines: Sequence[str], name: str = "events.txt") -> Path:
    path = directory / name
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture(params=["memory", "sqlite"])
async def repository(request):
    """Each test using this fixture runs once per storage backend."""
    if request.param == "memory":
        repo = InMemoryEventRepository()
    else:
        repo = SQLiteEventRepository(":memory:")
    yield repo
    await repo.close()


@pytest.fixture
def memory_repository() -> InMemoryEventRepository:
    return InMemoryEventRepository()


@pytest.fixture
def tracker() -> IngestionJobTracker:
    return IngestionJobTracker()


@pytest.fixture
async def pipeline(repository, tracker):
    pipe = IngestionPipeline(repository, tracker, progress_interval=2)
    yield pipe
    await pipe.close()
