"""Exception hierarchy for the Chronologicon engine.

Per-line problems (``LineValidationError``, ``ReferentialIntegrityError``) are
recoverable and end up in an ingestion job's error list. Lookup and structural
problems propagate to the caller.
"""


class ChronologiconError(Exception):
    """Base class for all engine errors."""


class LineValidationError(ChronologiconError, ValueError):
    """A single ingestion line failed validation."""

    def __init__(self, message: str, line_number: int | None = None) -> None:
        super().__init__(message)
        self.line_number = line_number


class ReferentialIntegrityError(ChronologiconError):
    """An event references a parent that does not exist in the repository."""

    def __init__(self, event_id: str, parent_id: str) -> None:
        super().__init__(f"Parent event '{parent_id}' does not exist for event '{event_id}'")
        self.event_id = event_id
        self.parent_id = parent_id


class EventNotFoundError(ChronologiconError, LookupError):
    """A requested event id is not present in the repository."""

    def __init__(self, event_id: str) -> None:
        super().__init__(f"Event not found: {event_id}")
        self.event_id = event_id


class StructuralIntegrityError(ChronologiconError):
    """Parent/child links form a cycle."""

    def __init__(self, event_id: str, path: tuple[str, ...] = ()) -> None:
        chain = " -> ".join((*path, event_id)) if path else event_id
        super().__init__(f"Cycle detected in parent/child links at event '{event_id}': {chain}")
        self.event_id = event_id
        self.path = path


class FatalIngestionError(ChronologiconError):
    """The ingestion source could not be read, or the stream aborted."""


class JobNotFoundError(ChronologiconError, LookupError):
    """No ingestion job exists with the given id."""

    def __init__(self, job_id: str) -> None:
        super().__init__(f"Ingestion job not found: {job_id}")
        self.job_id = job_id


class InvalidJobTransitionError(ChronologiconError):
    """A job status change is not allowed by the job state machine."""
