"""Chronologicon: ingestion and temporal analytics for historical event records."""

from chronologicon.analytics import (
    GapReport,
    OverlapPair,
    TemporalGap,
    find_largest_gap,
    find_overlaps,
    temporal_gap_report,
)
from chronologicon.config import EngineConfig
from chronologicon.errors import (
    ChronologiconError,
    EventNotFoundError,
    FatalIngestionError,
    InvalidJobTransitionError,
    JobNotFoundError,
    LineValidationError,
    ReferentialIntegrityError,
    StructuralIntegrityError,
)
from chronologicon.event import EventWindow, HistoricalEvent, PathStep
from chronologicon.hierarchy import TimelineNode, build_tree
from chronologicon.job import IngestionJob, JobStatus, JobUpdate
from chronologicon.parser import ParsedEvent, RejectedLine, parse_event_line, parse_event_line_strict
from chronologicon.paths import EventPath, InfluenceReport, event_influence, find_shortest_path
from chronologicon.pipeline import IngestionPipeline
from chronologicon.search import SearchPage, SearchQuery, SortField, SortOrder
from chronologicon.tracker import IngestionJobTracker

__version__ = "0.1.0"

__all__ = [
    "ChronologiconError",
    "EngineConfig",
    "EventNotFoundError",
    "EventPath",
    "EventWindow",
    "FatalIngestionError",
    "GapReport",
    "HistoricalEvent",
    "InfluenceReport",
    "IngestionJob",
    "IngestionJobTracker",
    "IngestionPipeline",
    "InvalidJobTransitionError",
    "JobNotFoundError",
    "JobStatus",
    "JobUpdate",
    "LineValidationError",
    "OverlapPair",
    "ParsedEvent",
    "PathStep",
    "ReferentialIntegrityError",
    "RejectedLine",
    "SearchPage",
    "SearchQuery",
    "SortField",
    "SortOrder",
    "StructuralIntegrityError",
    "TemporalGap",
    "TimelineNode",
    "build_tree",
    "event_influence",
    "find_largest_gap",
    "find_overlaps",
    "find_shortest_path",
    "parse_event_line",
    "parse_event_line_strict",
    "temporal_gap_report",
]
