"""
Descent paths between events.

Parent/child links form a forest, so there is at most one downward path from
one event to another. ``find_shortest_path`` walks the source's descendants
depth first until it reaches the target.
"""

import logging

from pydantic import BaseModel, Field

from chronologicon.errors import StructuralIntegrityError
from chronologicon.event import HistoricalEvent, PathStep, normalize_event_id
from chronologicon.storage.interfaces import EventRepositoryInterface

logger = logging.getLogger(__name__)

PATH_FOUND_MESSAGE = "Shortest temporal path found from source to target event."
NO_PATH_MESSAGE = "No temporal path found from source to target event."


class EventPath(BaseModel, frozen=True):
    """Events from source to target inclusive with their summed durations."""

    path: tuple[PathStep, ...]
    total_duration_minutes: int

    @classmethod
    def from_events(cls, events: list[HistoricalEvent]) -> "EventPath":
        return cls(
            path=tuple(e.path_step() for e in events),
            total_duration_minutes=sum(e.duration_minutes for e in events),
        )


class InfluenceReport(BaseModel, frozen=True):
    source_event_id: str
    target_event_id: str
    shortest_path: tuple[PathStep, ...] = Field(default=())
    total_duration_minutes: int = 0
    message: str


async def find_shortest_path(
    repository: EventRepositoryInterface,
    source_id: str,
    target_id: str,
    max_depth: int | None = None,
) -> EventPath | None:
    """
    Return the descent path from ``source_id`` to ``target_id``, or None.

    None means the source is unknown or the target is not a descendant of it
    (within ``max_depth`` parent/child hops, when given).

    Raises:
        StructuralIntegrityError: a child link leads back onto the current path.
    """
    source_id, target_id = normalize_event_id(source_id), normalize_event_id(target_id)
    source = await repository.get(source_id)
    if source is None:
        logger.debug("Path search from unknown event %s", source_id)
        return None

    trail: list[HistoricalEvent] = []
    found = await _descend(repository, source, target_id, trail, set(), max_depth)
    return EventPath.from_events(trail) if found else None


async def _descend(
    repository: EventRepositoryInterface,
    event: HistoricalEvent,
    target_id: str,
    trail: list[HistoricalEvent],
    on_path: set[str],
    remaining: int | None,
) -> bool:
    if event.event_id in on_path:
        raise StructuralIntegrityError(event.event_id, tuple(e.event_id for e in trail))

    trail.append(event)
    if event.event_id == target_id:
        return True

    on_path.add(event.event_id)
    if remaining is None or remaining > 0:
        next_remaining = None if remaining is None else remaining - 1
        for child in await repository.get_children(event.event_id):
            if await _descend(repository, child, target_id, trail, on_path, next_remaining):
                return True
    on_path.discard(event.event_id)
    trail.pop()
    return False


async def event_influence(
    repository: EventRepositoryInterface,
    source_id: str,
    target_id: str,
    max_depth: int | None = None,
) -> InfluenceReport:
    """Describe the descent path between two events; an empty report when none exists."""
    source_id, target_id = normalize_event_id(source_id), normalize_event_id(target_id)
    result = await find_shortest_path(repository, source_id, target_id, max_depth=max_depth)
    if result is None:
        return InfluenceReport(source_event_id=source_id, target_event_id=target_id, message=NO_PATH_MESSAGE)
    return InfluenceReport(
        source_event_id=source_id,
        target_event_id=target_id,
        shortest_path=result.path,
        total_duration_minutes=result.total_duration_minutes,
        message=PATH_FOUND_MESSAGE,
    )
