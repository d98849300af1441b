"""Historical event model and its read-only projections."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_event_id(value: str) -> str:
    """Canonical form of an event id: trimmed and lower-case."""
    return value.strip().lower()


def minutes_between(start: datetime, end: datetime) -> float:
    """Return the (possibly fractional) number of minutes from start to end."""
    return (end - start).total_seconds() / 60


class HistoricalEvent(BaseModel):
    """A historical record with a time interval and an optional parent.

    Events form a parent/child forest through ``parent_id``. The duration is
    derived from ``start`` and ``end`` and is never stored independently, so
    it cannot drift from the interval it describes.
    """

    model_config = {"frozen": True}

    event_id: str = Field(description="UUID-shaped primary key.")
    name: str = Field(min_length=1, description="Display name of the event.")
    description: str = Field(default="", description="Free text, may be empty.")
    start: datetime = Field(description="Timezone-aware start of the interval.")
    end: datetime = Field(description="Timezone-aware end of the interval, strictly after start.")
    parent_id: str | None = Field(
        default=None,
        description="Id of the parent event, or None for a root event.",
    )
    research_value: int = Field(
        default=0,
        ge=0,
        description="Opaque importance score.",
    )
    metadata: dict = Field(
        default_factory=dict,
        description="Carried but uninterpreted data, e.g. the originating line number.",
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        description="When the event was first stored.",
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        description="When the event was last written.",
    )

    @field_validator("event_id", "parent_id")
    @classmethod
    def canonical_ids(cls, value: str | None) -> str | None:
        return normalize_event_id(value) if value is not None else None

    @field_validator("start", "end", "created_at", "updated_at")
    @classmethod
    def must_be_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("event timestamps must be timezone-aware")
        return value

    @model_validator(mode="after")
    def end_after_start(self) -> "HistoricalEvent":
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration_minutes(self) -> int:
        """Whole minutes between start and end, rounded down."""
        return int((self.end - self.start).total_seconds() // 60)

    def window(self) -> "EventWindow":
        return EventWindow(event_id=self.event_id, name=self.name, start=self.start, end=self.end)

    def path_step(self) -> "PathStep":
        return PathStep(event_id=self.event_id, name=self.name, duration_minutes=self.duration_minutes)


class EventWindow(BaseModel, frozen=True):
    """The identifying fields and interval of an event."""

    event_id: str
    name: str
    start: datetime
    end: datetime


class PathStep(BaseModel, frozen=True):
    """One event on a descent path."""

    event_id: str
    name: str
    duration_minutes: int
