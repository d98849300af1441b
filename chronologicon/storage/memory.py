"""In-memory event repository for testing and development.

Keeps all events in a dictionary plus a parent -> children index. Suitable
for unit tests, quick experiments and small datasets. Nothing is persisted;
use ``SQLiteEventRepository`` when data must outlive the process.
"""

import asyncio
import copy
from datetime import datetime

from chronologicon.errors import ReferentialIntegrityError
from chronologicon.event import HistoricalEvent, normalize_event_id, utc_now
from chronologicon.search import SearchPage, SearchQuery, SortField, SortOrder
from chronologicon.storage.interfaces import EventRepositoryInterface


def _start_order(event: HistoricalEvent) -> tuple[datetime, str]:
    return (event.start, event.event_id)


def _sort_key(field: SortField):
    if field is SortField.END:
        return lambda e: (e.end, e.event_id)
    if field is SortField.NAME:
        return lambda e: (e.name.casefold(), e.event_id)
    if field is SortField.DURATION_MINUTES:
        return lambda e: (e.duration_minutes, e.event_id)
    return _start_order


def _detached(event: HistoricalEvent) -> HistoricalEvent:
    """Copy of ``event`` whose metadata is not shared with the store."""
    return event.model_copy(update={"metadata": copy.deepcopy(event.metadata)})


class InMemoryEventRepository(EventRepositoryInterface):
    """Dictionary-backed event repository keyed by event id.

    Direct lookups are O(1); child lookups use a parent index; searches and
    scans are O(n log n). Writes are serialized by an ``asyncio.Lock`` so
    the event map and the parent index always agree. Events go in and come
    out as copies, so mutating a returned event's metadata leaves the store alone.

    Example:
        ```python
        repository = InMemoryEventRepository()
        await repository.upsert(event)
        children = await repository.get_children(event.event_id)
        ```
    """

    def __init__(self) -> None:
        self._events: dict[str, HistoricalEvent] = {}
        self._children: dict[str, set[str]] = {}
        self._lock = asyncio.Lock()

    async def upsert(self, event: HistoricalEvent) -> HistoricalEvent:
        """Insert or replace an event, maintaining the parent index."""
        async with self._lock:
            if event.parent_id is not None and event.parent_id not in self._events:
                raise ReferentialIntegrityError(event.event_id, event.parent_id)

            existing = self._events.get(event.event_id)
            if existing is not None:
                stored = event.model_copy(
                    update={
                        "metadata": copy.deepcopy(event.metadata),
                        "created_at": existing.created_at,
                        "updated_at": utc_now(),
                    }
                )
                if existing.parent_id is not None:
                    self._children.get(existing.parent_id, set()).discard(event.event_id)
            else:
                stored = _detached(event)

            self._events[stored.event_id] = stored
            if stored.parent_id is not None:
                self._children.setdefault(stored.parent_id, set()).add(stored.event_id)
        return _detached(stored)

    async def get(self, event_id: str) -> HistoricalEvent | None:
        event = self._events.get(normalize_event_id(event_id))
        return _detached(event) if event is not None else None

    async def get_children(self, parent_id: str) -> list[HistoricalEvent]:
        child_ids = self._children.get(normalize_event_id(parent_id), set())
        children = [self._events[cid] for cid in child_ids if cid in self._events]
        return [_detached(e) for e in sorted(children, key=_start_order)]

    async def search(self, query: SearchQuery) -> SearchPage:
        """Filter, sort and page events with a linear scan."""
        matches = [event for event in self._events.values() if query.matches(event)]
        matches.sort(key=_sort_key(query.sort_field), reverse=query.sort_order is SortOrder.DESC)
        page = matches[query.offset : query.offset + query.page_size]
        return SearchPage(
            total=len(matches),
            page=query.page,
            page_size=query.page_size,
            events=tuple(_detached(e) for e in page),
        )

    async def scan_all(self) -> list[HistoricalEvent]:
        return [_detached(e) for e in sorted(self._events.values(), key=_start_order)]

    async def scan_range(self, range_start: datetime, range_end: datetime) -> list[HistoricalEvent]:
        contained = [e for e in self._events.values() if e.start >= range_start and e.end <= range_end]
        return [_detached(e) for e in sorted(contained, key=_start_order)]

    async def count(self) -> int:
        return len(self._events)
