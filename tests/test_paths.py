"""Tests for descent paths and influence reports.

This module verifies:
- A four-event chain sums durations along the inclusive path
- Unrelated events give no path; the influence report has zero duration
- Source equal to target is a one-step path
- Sibling branches are explored until the target is found
- max_depth limits the descent
- Unknown sources give no path
- Cycles raise StructuralIntegrityError
- Upper-case ids resolve to the stored lower-case events
"""

from datetime import timedelta

import pytest

from chronologicon.errors import StructuralIntegrityError
from chronologicon.paths import NO_PATH_MESSAGE, PATH_FOUND_MESSAGE, event_influence, find_shortest_path
from tests.conftest import at, make_event


@pytest.fixture
async def chain(repository):
    """root (60) -> first (480) -> second (960) -> leaf (180), plus an unrelated event."""
    root = await repository.upsert(make_event(name="Root", start=at(0), end=at(1)))
    first = await repository.upsert(
        make_event(name="First", start=at(2), end=at(2) + timedelta(minutes=480), parent_id=root.event_id)
    )
    second = await repository.upsert(
        make_event(name="Second", start=at(3), end=at(3) + timedelta(minutes=960), parent_id=first.event_id)
    )
    leaf = await repository.upsert(
        make_event(name="Leaf", start=at(4), end=at(4) + timedelta(minutes=180), parent_id=second.event_id)
    )
    unrelated = await repository.upsert(make_event(name="Elsewhere", start=at(5), end=at(6)))
    return {"root": root, "first": first, "second": second, "leaf": leaf, "unrelated": unrelated}


class TestShortestPath:
    async def test_chain_total(self, repository, chain):
        result = await find_shortest_path(repository, chain["root"].event_id, chain["leaf"].event_id)

        assert result is not None
        assert result.total_duration_minutes == 1680
        assert len(result.path) == 4
        assert [step.name for step in result.path] == ["Root", "First", "Second", "Leaf"]
        assert [step.duration_minutes for step in result.path] == [60, 480, 960, 180]

    async def test_unrelated_pair(self, repository, chain):
        result = await find_shortest_path(repository, chain["root"].event_id, chain["unrelated"].event_id)
        assert result is None

    async def test_no_upward_path(self, repository, chain):
        result = await find_shortest_path(repository, chain["leaf"].event_id, chain["root"].event_id)
        assert result is None

    async def test_source_is_target(self, repository, chain):
        result = await find_shortest_path(repository, chain["first"].event_id, chain["first"].event_id)
        assert len(result.path) == 1
        assert result.total_duration_minutes == 480

    async def test_unknown_source(self, repository, chain):
        result = await find_shortest_path(repository, "00000000-0000-4000-8000-000000000000", chain["leaf"].event_id)
        assert result is None

    async def test_max_depth(self, repository, chain):
        root_id, leaf_id = chain["root"].event_id, chain["leaf"].event_id
        assert await find_shortest_path(repository, root_id, leaf_id, max_depth=2) is None
        assert await find_shortest_path(repository, root_id, leaf_id, max_depth=3) is not None

    async def test_searches_past_dead_end_sibling(self, repository, chain):
        dead_end = await repository.upsert(
            make_event(name="Dead end", start=at(1, 30), end=at(2), parent_id=chain["root"].event_id)
        )
        await repository.upsert(make_event(name="Dead leaf", start=at(1, 40), parent_id=dead_end.event_id))

        result = await find_shortest_path(repository, chain["root"].event_id, chain["leaf"].event_id)
        assert [step.name for step in result.path] == ["Root", "First", "Second", "Leaf"]

    async def test_cycle_raises(self, repository, chain):
        root = chain["root"]
        await repository.upsert(root.model_copy(update={"parent_id": chain["leaf"].event_id}))
        with pytest.raises(StructuralIntegrityError):
            await find_shortest_path(repository, root.event_id, chain["unrelated"].event_id)


class TestInfluenceReport:
    async def test_found(self, repository, chain):
        report = await event_influence(repository, chain["root"].event_id, chain["leaf"].event_id)
        assert report.message == PATH_FOUND_MESSAGE
        assert report.total_duration_minutes == 1680
        assert len(report.shortest_path) == 4
        assert report.source_event_id == chain["root"].event_id

    async def test_not_found(self, repository, chain):
        report = await event_influence(repository, chain["root"].event_id, chain["unrelated"].event_id)
        assert report.message == NO_PATH_MESSAGE
        assert report.shortest_path == ()
        assert report.total_duration_minutes == 0

    async def test_upper_case_ids(self, repository, chain):
        report = await event_influence(repository, chain["root"].event_id.upper(), chain["leaf"].event_id.upper())
        assert report.message == PATH_FOUND_MESSAGE
        assert report.source_event_id == chain["root"].event_id
        assert report.target_event_id == chain["leaf"].event_id
