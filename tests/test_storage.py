"""Tests for the event repository backends.

Every test runs against both the in-memory and the SQLite repository.

This module verifies:
- Upsert inserts, replaces in place, preserves created_at and bumps updated_at
- Unknown parent ids are rejected with ReferentialIntegrityError
- Children come back ordered by start
- Search filters, sort fields, sort orders, fallbacks and paging
- Range scans return only fully contained events
- Timestamps keep their UTC timezone after a round trip, whatever offset they were written with
- Id lookups ignore case and surrounding whitespace
- Accented names filter and sort the same way on both backends
- Returned events do not share metadata with the store
- A failed SQLite commit is rolled back and does not leak into the next write
"""

from datetime import datetime, timedelta, timezone

import pytest

from chronologicon.errors import ReferentialIntegrityError
from chronologicon.search import SearchQuery, SortField, SortOrder
from chronologicon.storage import InMemoryEventRepository, SQLiteEventRepository, create_repository
from tests.conftest import at, make_event


class TestUpsert:
    async def test_insert_and_get(self, repository):
        event = make_event(name="Coronation", research_value=3)
        stored = await repository.upsert(event)
        fetched = await repository.get(event.event_id)

        assert stored.event_id == event.event_id
        assert fetched is not None
        assert fetched.name == "Coronation"
        assert fetched.research_value == 3
        assert fetched.start == event.start
        assert fetched.start.tzinfo is not None
        assert fetched.start.utcoffset() == timezone.utc.utcoffset(None)
        assert fetched.duration_minutes == 60
        assert await repository.count() == 1

    async def test_get_missing(self, repository):
        assert await repository.get("00000000-0000-4000-8000-000000000000") is None

    async def test_replace_keeps_single_record(self, repository):
        event = make_event(research_value=1)
        first = await repository.upsert(event)
        second = await repository.upsert(event.model_copy(update={"research_value": 9, "name": "Renamed"}))

        assert await repository.count() == 1
        fetched = await repository.get(event.event_id)
        assert fetched.research_value == 9
        assert fetched.name == "Renamed"
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at

    async def test_metadata_round_trip(self, repository):
        event = make_event().model_copy(update={"metadata": {"line_number": 12}})
        await repository.upsert(event)
        fetched = await repository.get(event.event_id)
        assert fetched.metadata == {"line_number": 12}

    async def test_unknown_parent_rejected(self, repository):
        orphan = make_event(parent_id="00000000-0000-4000-8000-000000000000")
        with pytest.raises(ReferentialIntegrityError) as exc_info:
            await repository.upsert(orphan)
        assert exc_info.value.parent_id == orphan.parent_id
        assert await repository.count() == 0

    async def test_reparenting_updates_children(self, repository):
        first_parent = await repository.upsert(make_event(name="P1"))
        second_parent = await repository.upsert(make_event(name="P2"))
        child = await repository.upsert(make_event(name="C", parent_id=first_parent.event_id))

        await repository.upsert(child.model_copy(update={"parent_id": second_parent.event_id}))

        assert await repository.get_children(first_parent.event_id) == []
        assert [c.event_id for c in await repository.get_children(second_parent.event_id)] == [child.event_id]


class TestChildren:
    async def test_children_ordered_by_start(self, repository):
        parent = await repository.upsert(make_event(name="Parent", start=at(8), end=at(18)))
        late = await repository.upsert(make_event(name="Late", start=at(15), parent_id=parent.event_id))
        early = await repository.upsert(make_event(name="Early", start=at(9), parent_id=parent.event_id))
        middle = await repository.upsert(make_event(name="Middle", start=at(12), parent_id=parent.event_id))

        children = await repository.get_children(parent.event_id)
        assert [c.event_id for c in children] == [early.event_id, middle.event_id, late.event_id]

    async def test_leaf_has_no_children(self, repository):
        leaf = await repository.upsert(make_event())
        assert await repository.get_children(leaf.event_id) == []


@pytest.fixture
async def populated(repository):
    """Five events spread over a day with distinct names and durations."""
    events = [
        make_event(name="Battle of Hastings", start=at(9), end=at(10)),
        make_event(name="Signing of the Charter", start=at(11), end=at(14)),
        make_event(name="Great Fire", start=at(12), end=at(12, 30)),
        make_event(name="battle aftermath", start=at(15), end=at(19)),
        make_event(name="Harvest Festival", start=at(20), end=at(22)),
    ]
    for event in events:
        await repository.upsert(event)
    return repository


class TestSearch:
    async def test_default_query_sorts_by_start(self, populated):
        page = await populated.search(SearchQuery())
        assert page.total == 5
        assert page.page == 1
        assert page.page_size == 10
        assert [e.start for e in page.events] == sorted(e.start for e in page.events)

    async def test_name_filter_is_case_insensitive(self, populated):
        page = await populated.search(SearchQuery(name_contains="BATTLE"))
        assert page.total == 2
        assert {e.name for e in page.events} == {"Battle of Hastings", "battle aftermath"}

    async def test_name_filter_treats_wildcards_literally(self, populated):
        page = await populated.search(SearchQuery(name_contains="%"))
        assert page.total == 0

    async def test_date_bounds(self, populated):
        page = await populated.search(SearchQuery(start_after=at(11), end_before=at(19)))
        assert {e.name for e in page.events} == {"Signing of the Charter", "Great Fire", "battle aftermath"}

    async def test_sort_by_duration_desc(self, populated):
        query = SearchQuery(sort_field=SortField.DURATION_MINUTES, sort_order=SortOrder.DESC)
        page = await populated.search(query)
        assert [e.duration_minutes for e in page.events] == [240, 180, 120, 60, 30]

    async def test_sort_by_name_asc(self, populated):
        page = await populated.search(SearchQuery(sort_field="name"))
        assert [e.name.lower() for e in page.events] == sorted(e.name.lower() for e in page.events)

    async def test_sort_by_end(self, populated):
        page = await populated.search(SearchQuery(sort_field="end", sort_order="desc"))
        assert [e.end for e in page.events] == sorted((e.end for e in page.events), reverse=True)

    async def test_unknown_sort_falls_back(self, populated):
        query = SearchQuery(sort_field="research_value; DROP TABLE", sort_order="sideways")
        assert query.sort_field is SortField.START
        assert query.sort_order is SortOrder.ASC
        page = await populated.search(query)
        assert page.events[0].name == "Battle of Hastings"

    async def test_paging(self, populated):
        first = await populated.search(SearchQuery(page=1, page_size=2))
        third = await populated.search(SearchQuery(page=3, page_size=2))
        beyond = await populated.search(SearchQuery(page=4, page_size=2))

        assert first.total == third.total == beyond.total == 5
        assert [e.name for e in first.events] == ["Battle of Hastings", "Signing of the Charter"]
        assert [e.name for e in third.events] == ["Harvest Festival"]
        assert beyond.events == ()


class TestScans:
    async def test_scan_all_sorted(self, populated):
        events = await populated.scan_all()
        assert len(events) == 5
        assert [e.start for e in events] == sorted(e.start for e in events)

    async def test_scan_range_requires_containment(self, populated):
        events = await populated.scan_range(at(10, 30), at(15))
        assert {e.name for e in events} == {"Signing of the Charter", "Great Fire"}


class TestRepositoryFactory:
    def test_memory_url(self):
        assert isinstance(create_repository("memory://"), InMemoryEventRepository)

    async def test_sqlite_url(self, tmp_path):
        repo = create_repository(f"sqlite:///{tmp_path / 'events.db'}")
        try:
            assert isinstance(repo, SQLiteEventRepository)
            await repo.upsert(make_event())
            assert await repo.count() == 1
        finally:
            await repo.close()
        assert (tmp_path / "events.db").exists()

    def test_unsupported_url(self):
        with pytest.raises(ValueError):
            create_repository("postgresql://localhost/events")


class TestIdNormalization:
    async def test_lookups_ignore_case(self, repository):
        parent = await repository.upsert(make_event(event_id="ABCDEF01-2345-4678-9ABC-DEF012345678"))
        child = await repository.upsert(make_event(parent_id="abcdef01-2345-4678-9abc-def012345678"))

        assert parent.event_id == "abcdef01-2345-4678-9abc-def012345678"
        fetched = await repository.get(" ABCDEF01-2345-4678-9ABC-DEF012345678 ")
        assert fetched is not None
        assert fetched.event_id == parent.event_id
        children = await repository.get_children("ABCDEF01-2345-4678-9ABC-DEF012345678")
        assert [c.event_id for c in children] == [child.event_id]


class TestNonAsciiNames:
    """Both backends fold case the same way, accented letters included."""

    async def test_filter_folds_accents_case(self, repository):
        await repository.upsert(make_event(name="Émile Zola publishes J'accuse"))
        await repository.upsert(make_event(name="Treaty of Utrecht"))
        page = await repository.search(SearchQuery(name_contains="ÉMILE"))
        assert [e.name for e in page.events] == ["Émile Zola publishes J'accuse"]

    async def test_name_sort_matches_across_backends(self, repository):
        for name in ("zebra crossing", "Émile", "apple harvest"):
            await repository.upsert(make_event(name=name))
        page = await repository.search(SearchQuery(sort_field=SortField.NAME))
        assert [e.name for e in page.events] == ["apple harvest", "zebra crossing", "Émile"]


class TestStoredCopies:
    async def test_returned_metadata_is_detached(self, repository):
        event = make_event().model_copy(update={"metadata": {"line_number": 1}})
        stored = await repository.upsert(event)
        stored.metadata["line_number"] = 99
        event.metadata["line_number"] = 42

        fetched = await repository.get(event.event_id)
        fetched.metadata["extra"] = True

        again = await repository.get(event.event_id)
        assert again.metadata == {"line_number": 1}


class TestSQLiteBackend:
    async def test_offset_timestamps_stored_as_utc(self):
        repo = SQLiteEventRepository(":memory:")
        try:
            plus_two = timezone(timedelta(hours=2))
            event = make_event(
                start=datetime(2023, 1, 1, 11, tzinfo=plus_two),
                end=datetime(2023, 1, 1, 12, tzinfo=plus_two),
            )
            await repo.upsert(event)

            fetched = await repo.get(event.event_id)
            assert fetched.start == at(9)
            assert fetched.start.utcoffset() == timedelta(0)
            assert fetched.created_at.tzinfo is not None

            in_range = await repo.scan_range(at(8), at(11))
            assert [e.event_id for e in in_range] == [event.event_id]
        finally:
            await repo.close()

    async def test_failed_commit_rolls_back(self, monkeypatch):
        repo = SQLiteEventRepository(":memory:")
        try:
            real_commit = repo._session.commit
            calls = {"count": 0}

            def commit_failing_once():
                calls["count"] += 1
                if calls["count"] == 1:
                    raise RuntimeError("disk full")
                real_commit()

            monkeypatch.setattr(repo._session, "commit", commit_failing_once)

            with pytest.raises(RuntimeError):
                await repo.upsert(make_event(name="Lost"))
            kept = await repo.upsert(make_event(name="Kept"))

            assert await repo.count() == 1
            assert (await repo.scan_all())[0].event_id == kept.event_id
        finally:
            await repo.close()
