"""Search parameters and paged results for event range/filter queries."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from chronologicon.event import HistoricalEvent

MAX_PAGE_SIZE = 100


class SortField(str, Enum):
    """Event fields a search may sort on."""

    START = "start"
    END = "end"
    NAME = "name"
    DURATION_MINUTES = "duration_minutes"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Storage column names, accepted as aliases.
_SORT_FIELD_ALIASES = {
    "start_date": SortField.START,
    "end_date": SortField.END,
    "event_name": SortField.NAME,
    "duration": SortField.DURATION_MINUTES,
}


class SearchQuery(BaseModel):
    """Filters, ordering and paging for ``EventRepositoryInterface.search``.

    Unknown sort fields fall back to ``start`` and unknown sort orders to
    ascending, so a query built from untrusted input never fails on those.
    """

    model_config = {"frozen": True}

    name_contains: str | None = Field(default=None, description="Case-insensitive substring of the name.")
    start_after: datetime | None = Field(default=None, description="Only events with start >= this instant.")
    end_before: datetime | None = Field(default=None, description="Only events with end <= this instant.")
    sort_field: SortField = SortField.START
    sort_order: SortOrder = SortOrder.ASC
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=MAX_PAGE_SIZE)

    @field_validator("sort_field", mode="before")
    @classmethod
    def fallback_sort_field(cls, value: object) -> SortField:
        if isinstance(value, SortField):
            return value
        key = str(value or "").strip().lower()
        if key in _SORT_FIELD_ALIASES:
            return _SORT_FIELD_ALIASES[key]
        try:
            return SortField(key)
        except ValueError:
            return SortField.START

    @field_validator("sort_order", mode="before")
    @classmethod
    def fallback_sort_order(cls, value: object) -> SortOrder:
        if isinstance(value, SortOrder):
            return value
        return SortOrder.DESC if str(value or "").strip().lower() == "desc" else SortOrder.ASC

    @field_validator("start_after", "end_before")
    @classmethod
    def must_be_timezone_aware(cls, value: datetime | None) -> datetime | None:
        if value is not None and (value.tzinfo is None or value.utcoffset() is None):
            raise ValueError("search bounds must be timezone-aware")
        return value

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def matches(self, event: HistoricalEvent) -> bool:
        """Check the filter part of the query against one event."""
        if self.name_contains and self.name_contains.casefold() not in event.name.casefold():
            return False
        if self.start_after is not None and event.start < self.start_after:
            return False
        if self.end_before is not None and event.end > self.end_before:
            return False
        return True


class SearchPage(BaseModel, frozen=True):
    """One page of search results plus the total number of matches."""

    total: int = Field(ge=0, description="Number of events matching the filters, across all pages.")
    page: int
    page_size: int
    events: tuple[HistoricalEvent, ...] = ()
