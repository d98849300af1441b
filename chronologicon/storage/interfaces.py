"""Storage interface definitions for the event repository."""

from abc import ABC, abstractmethod
from datetime import datetime

from chronologicon.event import HistoricalEvent
from chronologicon.search import SearchQuery, SearchPage


class EventRepositoryInterface(ABC):
    """Abstract interface for historical event storage.

    Implementations must tolerate concurrent upserts from several ingestion
    runs; for a given event id the last writer wins.
    """

    @abstractmethod
    async def upsert(self, event: HistoricalEvent) -> HistoricalEvent:
        """Insert an event or fully replace the stored record with the same id.

        Replacing keeps the stored ``created_at`` and bumps ``updated_at``.
        Returns the record as stored.

        Raises:
            ReferentialIntegrityError: ``event.parent_id`` names an event that
                does not exist.
        """

    @abstractmethod
    async def get(self, event_id: str) -> HistoricalEvent | None:
        """Retrieve an event by id, or None if not found."""

    @abstractmethod
    async def get_children(self, parent_id: str) -> list[HistoricalEvent]:
        """Return the direct children of an event ordered by start ascending."""

    @abstractmethod
    async def search(self, query: SearchQuery) -> SearchPage:
        """Filter, sort and page events according to ``query``."""

    @abstractmethod
    async def scan_all(self) -> list[HistoricalEvent]:
        """Return every stored event ordered by start ascending."""

    @abstractmethod
    async def scan_range(self, range_start: datetime, range_end: datetime) -> list[HistoricalEvent]:
        """Return events fully contained in ``[range_start, range_end]``, ordered by start."""

    @abstractmethod
    async def count(self) -> int:
        """Return total number of stored events."""

    async def close(self) -> None:
        """Release any resources held by the backend."""
