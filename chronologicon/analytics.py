"""
Interval analytics over the stored event set.

Two read-only queries:

- ``find_overlaps``: every pair of events whose intervals intersect by at
  least one whole minute, largest overlap first.
- ``find_largest_gap``: the widest stretch of time inside a range that no
  event covers, with the events on either side of it.

Both take a repository, read a snapshot of the events they need and never
write.
"""

import logging
import math
from datetime import datetime

from pydantic import BaseModel, Field

from chronologicon.event import EventWindow, HistoricalEvent, minutes_between
from chronologicon.storage.interfaces import EventRepositoryInterface

logger = logging.getLogger(__name__)

GAP_FOUND_MESSAGE = "Largest temporal gap identified."
NO_GAP_MESSAGE = "No significant temporal gaps found within the specified range, or too few events."


class OverlapPair(BaseModel, frozen=True):
    """Two events with intersecting intervals; ``event_a`` has the smaller id."""

    event_a: EventWindow
    event_b: EventWindow
    overlap_minutes: int = Field(gt=0)


class GapBoundaryBefore(BaseModel, frozen=True):
    """The event whose end opens a gap."""

    event_id: str
    name: str
    end: datetime


class GapBoundaryAfter(BaseModel, frozen=True):
    """The event whose start closes a gap."""

    event_id: str
    name: str
    start: datetime


class TemporalGap(BaseModel, frozen=True):
    gap_start: datetime
    gap_end: datetime
    duration_minutes: int = Field(description="Gap length in minutes, rounded half-up.")
    preceding_event: GapBoundaryBefore
    succeeding_event: GapBoundaryAfter


class GapReport(BaseModel, frozen=True):
    """Largest gap in a range plus a human-readable summary."""

    range_start: datetime
    range_end: datetime
    largest_gap: TemporalGap | None = None
    message: str


def _overlap_pair(first: HistoricalEvent, second: HistoricalEvent, minutes: int) -> OverlapPair:
    a, b = (first, second) if first.event_id < second.event_id else (second, first)
    return OverlapPair(event_a=a.window(), event_b=b.window(), overlap_minutes=minutes)


async def find_overlaps(repository: EventRepositoryInterface) -> list[OverlapPair]:
    """
    Return every pair of distinct events overlapping by more than zero whole minutes.

    Events are swept in start order while keeping the set of intervals still
    open at the current start, so only intersecting pairs are ever compared.
    Results are sorted by ``overlap_minutes`` descending, then by the pair's ids.
    """
    events = sorted(await repository.scan_all(), key=lambda e: (e.start, e.event_id))
    active: list[HistoricalEvent] = []
    pairs: list[OverlapPair] = []

    for event in events:
        active = [other for other in active if other.end > event.start]
        for other in active:
            # other.start <= event.start < other.end, so the intersection starts at event.start
            minutes = math.floor(minutes_between(event.start, min(other.end, event.end)))
            if minutes > 0:
                pairs.append(_overlap_pair(other, event, minutes))
        active.append(event)

    pairs.sort(key=lambda p: (-p.overlap_minutes, p.event_a.event_id, p.event_b.event_id))
    logger.debug("Found %d overlapping pairs among %d events", len(pairs), len(events))
    return pairs


class _CoverageBlock:
    """A maximal run of events whose intervals chain together without a gap."""

    def __init__(self, first: HistoricalEvent):
        self.first = first
        self.last_ending = first
        self.end = first.end

    def absorb(self, event: HistoricalEvent) -> None:
        if event.end > self.end:
            self.end = event.end
            self.last_ending = event


def _coverage_blocks(events: list[HistoricalEvent]) -> list[_CoverageBlock]:
    blocks: list[_CoverageBlock] = []
    for event in sorted(events, key=lambda e: (e.start, e.end, e.event_id)):
        if blocks and event.start <= blocks[-1].end:
            blocks[-1].absorb(event)
        else:
            blocks.append(_CoverageBlock(event))
    return blocks


async def find_largest_gap(
    repository: EventRepositoryInterface,
    range_start: datetime,
    range_end: datetime,
) -> TemporalGap | None:
    """
    Find the longest uncovered span between events fully inside ``[range_start, range_end]``.

    Overlapping or touching events are merged into coverage blocks first, so
    the reported neighbours are the event that actually ends the earlier block
    and the event that starts the later one. The earliest gap wins a tie.
    Returns None when the range holds fewer than two separate blocks.

    Raises:
        ValueError: ``range_end`` is not after ``range_start``.
    """
    if range_end <= range_start:
        raise ValueError("range end must be after range start")

    blocks = _coverage_blocks(await repository.scan_range(range_start, range_end))
    best: tuple[float, _CoverageBlock, _CoverageBlock] | None = None
    for before, after in zip(blocks, blocks[1:]):
        minutes = minutes_between(before.end, after.first.start)
        if minutes <= 0:
            continue
        if best is None or minutes > best[0]:
            best = (minutes, before, after)

    if best is None:
        return None

    minutes, before, after = best
    preceding = before.last_ending
    succeeding = after.first
    return TemporalGap(
        gap_start=before.end,
        gap_end=after.first.start,
        duration_minutes=math.floor(minutes + 0.5),
        preceding_event=GapBoundaryBefore(event_id=preceding.event_id, name=preceding.name, end=preceding.end),
        succeeding_event=GapBoundaryAfter(event_id=succeeding.event_id, name=succeeding.name, start=succeeding.start),
    )


async def temporal_gap_report(
    repository: EventRepositoryInterface,
    range_start: datetime,
    range_end: datetime,
) -> GapReport:
    """Wrap ``find_largest_gap`` with a summary message."""
    gap = await find_largest_gap(repository, range_start, range_end)
    return GapReport(
        range_start=range_start,
        range_end=range_end,
        largest_gap=gap,
        message=GAP_FOUND_MESSAGE if gap is not None else NO_GAP_MESSAGE,
    )
