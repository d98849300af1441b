"""
Timeline hierarchy assembly.

Builds the nested parent/child tree rooted at one event, fetching each level
through the repository's child lookup.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from chronologicon.errors import EventNotFoundError, StructuralIntegrityError
from chronologicon.event import HistoricalEvent, normalize_event_id
from chronologicon.storage.interfaces import EventRepositoryInterface


class TimelineNode(BaseModel, frozen=True):
    """An event with its child subtrees, children ordered by start."""

    event_id: str
    name: str
    description: str = ""
    start: datetime
    end: datetime
    duration_minutes: int
    parent_id: str | None = None
    research_value: int = 0
    metadata: dict = Field(default_factory=dict)
    children: tuple["TimelineNode", ...] = Field(default=())

    @classmethod
    def from_event(cls, event: HistoricalEvent, children: tuple["TimelineNode", ...] = ()) -> "TimelineNode":
        return cls(
            event_id=event.event_id,
            name=event.name,
            description=event.description,
            start=event.start,
            end=event.end,
            duration_minutes=event.duration_minutes,
            parent_id=event.parent_id,
            research_value=event.research_value,
            metadata=dict(event.metadata),
            children=children,
        )

    def size(self) -> int:
        """Number of nodes in this subtree, this node included."""
        return 1 + sum(child.size() for child in self.children)

    def depth(self) -> int:
        """Number of levels in this subtree; a leaf has depth 1."""
        return 1 + max((child.depth() for child in self.children), default=0)


async def build_tree(repository: EventRepositoryInterface, root_id: str) -> TimelineNode:
    """
    Assemble the timeline tree rooted at ``root_id``.

    Raises:
        EventNotFoundError: ``root_id`` is not in the repository.
        StructuralIntegrityError: parent links loop back onto the current descent.
    """
    root_id = normalize_event_id(root_id)
    root = await repository.get(root_id)
    if root is None:
        raise EventNotFoundError(root_id)
    return await _build_node(repository, root, [], set())


async def _build_node(
    repository: EventRepositoryInterface,
    event: HistoricalEvent,
    path: list[str],
    on_path: set[str],
) -> TimelineNode:
    if event.event_id in on_path:
        raise StructuralIntegrityError(event.event_id, tuple(path))

    path.append(event.event_id)
    on_path.add(event.event_id)
    try:
        children = []
        for child in await repository.get_children(event.event_id):
            children.append(await _build_node(repository, child, path, on_path))
    finally:
        path.pop()
        on_path.discard(event.event_id)
    return TimelineNode.from_event(event, tuple(children))
