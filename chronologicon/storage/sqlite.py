"""
SQLite implementation of the event repository.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, TypeVar

from sqlalchemy import func
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from chronologicon.errors import ReferentialIntegrityError
from chronologicon.event import HistoricalEvent, normalize_event_id, utc_now
from chronologicon.search import SearchPage, SearchQuery, SortField, SortOrder
from chronologicon.storage.interfaces import EventRepositoryInterface
from chronologicon.storage.models import EventRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")

MEMORY_PATH = ":memory:"

_SORT_COLUMNS = {
    SortField.START: EventRecord.start_date,
    SortField.END: EventRecord.end_date,
    SortField.NAME: EventRecord.name_key,
    SortField.DURATION_MINUTES: EventRecord.duration_minutes,
}


def _to_storage(value: datetime) -> datetime:
    """Normalize an aware datetime to UTC before it is bound or written."""
    return value.astimezone(timezone.utc)


def _from_storage(value: datetime) -> datetime:
    """SQLite hands timestamps back without an offset; they were written as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_event(record: EventRecord) -> HistoricalEvent:
    return HistoricalEvent(
        event_id=record.event_id,
        name=record.name,
        description=record.description,
        start=_from_storage(record.start_date),
        end=_from_storage(record.end_date),
        parent_id=record.parent_id,
        research_value=record.research_value,
        metadata=dict(record.event_metadata or {}),
        created_at=_from_storage(record.created_at),
        updated_at=_from_storage(record.updated_at),
    )


class SQLiteEventRepository(EventRepositoryInterface):
    """
    SQLite-backed event repository.

    Pass a file path, or ``":memory:"`` for a throwaway database. Each
    operation runs its session work in a worker thread via
    ``asyncio.to_thread`` so the event loop stays free for status queries.
    An ``asyncio.Lock`` keeps one operation on the shared session at a time.
    """

    def __init__(self, db_path: str):
        connect_args = {"check_same_thread": False}
        if db_path == MEMORY_PATH:
            # Worker threads must all see the same in-memory database.
            self.engine = create_engine("sqlite://", connect_args=connect_args, poolclass=StaticPool)
        else:
            self.engine = create_engine(f"sqlite:///{db_path}", connect_args=connect_args)
        SQLModel.metadata.create_all(self.engine)
        self._session = Session(self.engine)
        self._lock = asyncio.Lock()
        logger.debug("Opened SQLite event repository at %s", db_path)

    async def _run(self, operation: Callable[..., T], *args) -> T:
        async with self._lock:
            return await asyncio.to_thread(operation, *args)

    def _commit(self) -> None:
        try:
            self._session.commit()
        except Exception:
            self._session.rollback()
            raise

    async def upsert(self, event: HistoricalEvent) -> HistoricalEvent:
        """
        Insert or fully replace an event row; keeps ``created_at`` on replace.
        """
        return await self._run(self._upsert, event)

    def _upsert(self, event: HistoricalEvent) -> HistoricalEvent:
        if event.parent_id is not None and self._session.get(EventRecord, event.parent_id) is None:
            raise ReferentialIntegrityError(event.event_id, event.parent_id)

        record = self._session.get(EventRecord, event.event_id)
        if record is None:
            record = EventRecord(
                event_id=event.event_id,
                name=event.name,
                name_key=event.name.casefold(),
                start_date=_to_storage(event.start),
                end_date=_to_storage(event.end),
                duration_minutes=event.duration_minutes,
                created_at=_to_storage(event.created_at),
                updated_at=_to_storage(event.updated_at),
            )
        else:
            record.name = event.name
            record.name_key = event.name.casefold()
            record.start_date = _to_storage(event.start)
            record.end_date = _to_storage(event.end)
            record.duration_minutes = event.duration_minutes
            record.updated_at = utc_now()
        record.description = event.description
        record.parent_id = event.parent_id
        record.research_value = event.research_value
        record.event_metadata = dict(event.metadata)

        self._session.add(record)
        self._commit()
        self._session.refresh(record)
        return _to_event(record)

    async def get(self, event_id: str) -> HistoricalEvent | None:
        return await self._run(self._get, normalize_event_id(event_id))

    def _get(self, event_id: str) -> HistoricalEvent | None:
        record = self._session.get(EventRecord, event_id)
        return _to_event(record) if record is not None else None

    async def get_children(self, parent_id: str) -> list[HistoricalEvent]:
        statement = (
            select(EventRecord)
            .where(EventRecord.parent_id == normalize_event_id(parent_id))
            .order_by(EventRecord.start_date, EventRecord.event_id)
        )
        return await self._run(self._all, statement)

    def _all(self, statement) -> list[HistoricalEvent]:
        return [_to_event(r) for r in self._session.exec(statement).all()]

    async def search(self, query: SearchQuery) -> SearchPage:
        """
        Filter, sort and page events in SQL.
        """
        return await self._run(self._search, query)

    def _search(self, query: SearchQuery) -> SearchPage:
        conditions = []
        if query.name_contains:
            conditions.append(EventRecord.name_key.contains(query.name_contains.casefold(), autoescape=True))
        if query.start_after is not None:
            conditions.append(EventRecord.start_date >= _to_storage(query.start_after))
        if query.end_before is not None:
            conditions.append(EventRecord.end_date <= _to_storage(query.end_before))

        count_statement = select(func.count(EventRecord.event_id)).where(*conditions)  # pylint: disable=not-callable
        total = self._session.exec(count_statement).one()

        sort_column = _SORT_COLUMNS[query.sort_field]
        if query.sort_order is SortOrder.DESC:
            ordering = (sort_column.desc(), EventRecord.event_id.desc())  # type: ignore[union-attr]
        else:
            ordering = (sort_column.asc(), EventRecord.event_id.asc())  # type: ignore[union-attr]
        statement = (
            select(EventRecord)
            .where(*conditions)
            .order_by(*ordering)
            .offset(query.offset)
            .limit(query.page_size)
        )
        events = tuple(self._all(statement))
        return SearchPage(total=total, page=query.page, page_size=query.page_size, events=events)

    async def scan_all(self) -> list[HistoricalEvent]:
        statement = select(EventRecord).order_by(EventRecord.start_date, EventRecord.event_id)
        return await self._run(self._all, statement)

    async def scan_range(self, range_start: datetime, range_end: datetime) -> list[HistoricalEvent]:
        statement = (
            select(EventRecord)
            .where(EventRecord.start_date >= _to_storage(range_start))
            .where(EventRecord.end_date <= _to_storage(range_end))
            .order_by(EventRecord.start_date, EventRecord.event_id)
        )
        return await self._run(self._all, statement)

    async def count(self) -> int:
        statement = select(func.count(EventRecord.event_id))  # pylint: disable=not-callable
        return await self._run(lambda: self._session.exec(statement).one())

    async def close(self) -> None:
        """
        Close the session and dispose of the engine.
        """
        async with self._lock:
            self._session.close()
            self.engine.dispose()
