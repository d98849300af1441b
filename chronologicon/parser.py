"""Line parser and validator for pipe-delimited historical event records.

Record format (one per line)::

    event_id|event_name|start_date|end_date|parent_id_or_NULL|research_value|description

``parse_event_line`` never raises on malformed input. It returns either a
``ParsedEvent`` or a ``RejectedLine`` carrying a message that names the field
that failed. Checks run in a fixed order and the first failure wins.
"""

import re
from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, ValidationError

from chronologicon.errors import LineValidationError
from chronologicon.event import HistoricalEvent

FIELD_SEPARATOR = "|"
EXPECTED_FIELDS = 7
NULL_PARENT = "NULL"

_UUID_RE = re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$", re.IGNORECASE)
_ISO_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})(?:\.(\d{3}))?Z?$")
_INTEGER_RE = re.compile(r"^[+-]?\d+$")


class ParsedEvent(BaseModel, frozen=True):
    """A line that passed validation."""

    kind: Literal["parsed"] = "parsed"
    line_number: int
    event: HistoricalEvent


class RejectedLine(BaseModel, frozen=True):
    """A line that failed validation, with the reason."""

    kind: Literal["rejected"] = "rejected"
    line_number: int
    message: str


ParseResult = Annotated[Union[ParsedEvent, RejectedLine], Field(discriminator="kind")]


def is_valid_uuid(value: str) -> bool:
    """Check for the canonical 8-4-4-4-12 hexadecimal shape, ignoring case."""
    return bool(_UUID_RE.match(value))


def parse_iso_timestamp(value: str) -> datetime | None:
    """Parse ``YYYY-MM-DDTHH:mm:ss[.fff][Z]`` into an aware UTC datetime.

    Timestamps without the ``Z`` suffix are read as UTC as well. Returns None
    when the value does not match the pattern or is not a real calendar
    instant (e.g. February 30th).
    """
    match = _ISO_RE.match(value)
    if match is None:
        return None
    year, month, day, hour, minute, second, millis = match.groups()
    try:
        return datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            int(millis or 0) * 1000,
            tzinfo=timezone.utc,
        )
    except ValueError:
        return None


def parse_event_line(line: str, line_number: int) -> ParsedEvent | RejectedLine:
    """Validate one record line and build a ``HistoricalEvent`` from it.

    Args:
        line: Raw text of the line, without its trailing newline.
        line_number: 1-based position of the line in its source.

    Returns:
        ``ParsedEvent`` on success, otherwise ``RejectedLine`` describing the
        first check that failed.
    """

    def reject(message: str) -> RejectedLine:
        return RejectedLine(line_number=line_number, message=message)

    parts = line.split(FIELD_SEPARATOR)
    if len(parts) < EXPECTED_FIELDS:
        return reject(f"Insufficient fields. Expected {EXPECTED_FIELDS}, got {len(parts)}")
    if len(parts) > EXPECTED_FIELDS:
        return reject(f"Too many fields. Expected {EXPECTED_FIELDS}, got {len(parts)}")

    raw_id, raw_name, raw_start, raw_end, raw_parent, raw_research, raw_description = parts

    event_id = raw_id.strip()
    if not is_valid_uuid(event_id):
        return reject(f"Invalid UUID format for event_id: '{raw_id}'")

    start = parse_iso_timestamp(raw_start.strip())
    if start is None:
        return reject(f"Invalid date format for start_date: '{raw_start}'")
    end = parse_iso_timestamp(raw_end.strip())
    if end is None:
        return reject(f"Invalid date format for end_date: '{raw_end}'")

    if end <= start:
        return reject("end_date must be after start_date")

    parent_token = raw_parent.strip()
    parent_id: str | None = None
    if parent_token and parent_token.upper() != NULL_PARENT:
        if not is_valid_uuid(parent_token):
            return reject(f"Invalid UUID format for parent_id: '{raw_parent}'")
        parent_id = parent_token.lower()

    research_token = raw_research.strip()
    if not _INTEGER_RE.match(research_token):
        return reject(f"Invalid research_value: '{raw_research}'")
    research_value = int(research_token)
    if research_value < 0:
        return reject(f"research_value cannot be negative: {research_value}")

    name = raw_name.strip()
    if not name:
        return reject("event_name must not be empty")

    try:
        event = HistoricalEvent(
            event_id=event_id.lower(),
            name=name,
            description=raw_description.strip(),
            start=start,
            end=end,
            parent_id=parent_id,
            research_value=research_value,
            metadata={"line_number": line_number},
        )
    except ValidationError as e:
        return reject(f"Invalid event record: {e.errors()[0]['msg']}")
    return ParsedEvent(line_number=line_number, event=event)


def parse_event_line_strict(line: str, line_number: int) -> HistoricalEvent:
    """Like ``parse_event_line`` but raises ``LineValidationError`` on rejection."""
    result = parse_event_line(line, line_number)
    if isinstance(result, RejectedLine):
        raise LineValidationError(result.message, line_number=line_number)
    return result.event
